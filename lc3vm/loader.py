"""
LC-3 Virtual Machine - Program Image Loader

Image format (the LC-3 assembler's .obj output):

  word 0      origin: load address, big-endian
  word 1..n   program words, big-endian, stored at origin, origin+1, ...

Loading stops at the end of the image or after address $FFFF, whichever
comes first. A trailing odd byte is not a whole word and is ignored.
Instruction words are not validated here: a bad opcode only surfaces
when the CPU fetches it.
"""

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from .errors import LoadFailure

log = logging.getLogger(__name__)

WORD = struct.Struct('>H')


@dataclass
class LoadedImage:
    """Where an image landed in memory."""
    source: str
    origin: int
    length: int          # words actually stored

    @property
    def end(self) -> int:
        """Last address written (inclusive)."""
        return (self.origin + self.length - 1) & 0xFFFF


def read_image_bytes(path: Union[str, Path]) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise LoadFailure(path, e.strerror or str(e)) from e


def parse_image(data: bytes, source: str = "<bytes>"):
    """Split raw image bytes into (origin, [words]) in host order."""
    if len(data) < WORD.size:
        raise LoadFailure(source, "image has no origin word")
    if len(data) % WORD.size:
        log.warning("%s: ignoring trailing odd byte", source)
        data = data[:-1]
    origin = WORD.unpack_from(data, 0)[0]
    words: List[int] = [w for (w,) in WORD.iter_unpack(data[WORD.size:])]
    return origin, words


def load_image(memory, path_or_data: Union[str, Path, bytes, bytearray]) -> LoadedImage:
    """Install an image into memory at the origin it declares.

    path_or_data may be a filesystem path or the raw image bytes.
    Raises LoadFailure if the path cannot be read or the image is empty.
    """
    if isinstance(path_or_data, (str, Path)):
        source = str(path_or_data)
        data = read_image_bytes(path_or_data)
    else:
        source = "<bytes>"
        data = bytes(path_or_data)

    origin, words = parse_image(data, source)
    stored = memory.load_words(words, origin)
    if stored < len(words):
        log.warning("%s: %d word(s) past $FFFF dropped",
                    source, len(words) - stored)

    image = LoadedImage(source=source, origin=origin, length=stored)
    log.info("Loaded %s: %d word(s) at $%04X-$%04X",
             source, stored, origin, image.end if stored else origin)
    return image

