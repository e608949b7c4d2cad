from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import BinaryIO, List

_HASH_CHUNK_SIZE = 8192  # 8 KiB chunks for streaming hash calculation.


class CollectingProcessor:
    """Keep the raw bytes of every delivered artifact in memory."""

    def __init__(self) -> None:
        self.artifacts: List[bytes] = []
        self.finish_calls = 0

    @property
    def finished(self) -> bool:
        return self.finish_calls > 0

    def process(self, stream: BinaryIO) -> None:
        self.artifacts.append(stream.read())

    def finish(self) -> None:
        self.finish_calls += 1


@dataclass(slots=True)
class ArtifactDigest:
    md5: str
    size_bytes: int


@dataclass
class DigestingProcessor:
    """Hash each artifact with chunked reads so large files never sit in memory."""

    digests: List[ArtifactDigest] = field(default_factory=list)
    finished: bool = False

    @property
    def total_bytes(self) -> int:
        return sum(digest.size_bytes for digest in self.digests)

    def process(self, stream: BinaryIO) -> None:
        hasher = hashlib.md5()
        size = 0
        while chunk := stream.read(_HASH_CHUNK_SIZE):
            hasher.update(chunk)
            size += len(chunk)
        self.digests.append(ArtifactDigest(md5=hasher.hexdigest(), size_bytes=size))

    def finish(self) -> None:
        self.finished = True
