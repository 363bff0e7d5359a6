# libs/artifact_upload/pipe.py
"""
Single-pass materialization of an upload source into a local buffer.

A literal payload (``str`` or a bytes-like object) is written verbatim and hashed in
one go. A streamed payload (binary file object or iterable of byte chunks)
flows through a small pipe:

    producer -> HashStage -> [GzipStage] -> FileSink

The hash always sees the raw bytes; the sink sees whatever the last stage
emits. Any failure along the way aborts the pipe and surfaces as
``MaterializationError``, because the source may not be readable twice.
"""

from __future__ import annotations
import hashlib
import os
import zlib
from typing import BinaryIO, Iterable, Iterator, MutableMapping, Sequence

from libs.artifact_upload.errors import MaterializationError
from libs.artifact_upload.logging import debug
from libs.artifact_upload.types import MaterializedBuffer, Source

DEFAULT_CHUNK_SIZE = 64 * 1024

# wbits=16+MAX_WBITS selects the gzip container rather than raw zlib.
_GZIP_WBITS = 16 + zlib.MAX_WBITS


class HashStage:
    """Pass-through stage that accumulates a SHA-256 of everything fed to it."""

    def __init__(self) -> None:
        self._hash = hashlib.sha256()
        self.bytes_seen = 0

    def feed(self, chunk: bytes) -> bytes:
        self._hash.update(chunk)
        self.bytes_seen += len(chunk)
        return chunk

    def finish(self) -> bytes:
        return b""

    def hexdigest(self) -> str:
        return self._hash.hexdigest()


class GzipStage:
    """Gzip-encode the stream; ``finish`` flushes the trailer."""

    def __init__(self, level: int = zlib.Z_DEFAULT_COMPRESSION) -> None:
        self._z = zlib.compressobj(level, zlib.DEFLATED, _GZIP_WBITS)
        self.bytes_written = 0

    def feed(self, chunk: bytes) -> bytes:
        out = self._z.compress(chunk)
        self.bytes_written += len(out)
        return out

    def finish(self) -> bytes:
        out = self._z.flush(zlib.Z_FINISH)
        self.bytes_written += len(out)
        return out


class FileSink:
    """Terminal stage writing to the buffer file."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._fh: BinaryIO | None = open(path, "wb")

    def write(self, chunk: bytes) -> None:
        if chunk:
            self._fh.write(chunk)

    def close(self) -> None:
        if self._fh is not None:
            fh, self._fh = self._fh, None
            fh.flush()
            fh.close()


def iter_chunks(source, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield byte chunks from a binary file object or an iterable of chunks."""
    read = getattr(source, "read", None)
    if callable(read):
        while True:
            chunk = read(chunk_size)
            if not chunk:
                return
            yield _as_bytes(chunk)
    else:
        for chunk in source:
            if chunk:
                yield _as_bytes(chunk)


def _as_bytes(chunk) -> bytes:
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    raise TypeError(f"source produced {type(chunk).__name__}, expected bytes")


def run_pipe(chunks: Iterable[bytes], stages: Sequence, sink: FileSink) -> None:
    """Push every chunk through ``stages`` into ``sink``, then drain each stage in order."""
    try:
        for chunk in chunks:
            for stage in stages:
                chunk = stage.feed(chunk)
            sink.write(chunk)

        for i, stage in enumerate(stages):
            tail = stage.finish()
            for downstream in stages[i + 1 :]:
                tail = downstream.feed(tail)
            sink.write(tail)
    finally:
        sink.close()


def is_literal(source: Source) -> bool:
    return isinstance(source, (str, bytes, bytearray, memoryview))


def materialize(
    source: Source,
    path: str,
    *,
    compress: bool = False,
    headers: MutableMapping[str, str] | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> MaterializedBuffer:
    """
    Write ``source`` to ``path`` once, returning size and raw-bytes digest.

    Literal sources are never compressed, whatever ``compress`` says.
    When ``headers`` is given, ``content-length`` is set to the buffer size.

    Raises:
        MaterializationError: source read, compression or disk write failed
    """
    try:
        if is_literal(source):
            data = source.encode("utf-8") if isinstance(source, str) else bytes(source)
            if compress:
                debug("upload.materialize.compress_skipped", path=path, reason="literal source")
            with open(path, "wb") as fh:
                fh.write(data)
            digest = hashlib.sha256(data).hexdigest()
        else:
            hasher = HashStage()
            stages: list = [hasher]
            gzip_stage = None
            if compress:
                gzip_stage = GzipStage()
                stages.append(gzip_stage)
                debug("upload.materialize.compressing", path=path)
            run_pipe(iter_chunks(source, chunk_size), stages, FileSink(path))
            if gzip_stage is not None:
                debug(
                    "upload.materialize.compressed",
                    raw_bytes=hasher.bytes_seen,
                    compressed_bytes=gzip_stage.bytes_written,
                )
            digest = hasher.hexdigest()

        size = os.stat(path).st_size
    except MaterializationError:
        raise
    except Exception as e:
        raise MaterializationError(f"Could not materialize upload source: {type(e).__name__}: {e}") from e

    if headers is not None:
        headers["content-length"] = str(size)

    debug("upload.materialize.written", path=path, size=size)
    return MaterializedBuffer(path=path, size=size, digest=digest)
