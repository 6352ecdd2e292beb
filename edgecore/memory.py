"""Allocators with usage statistics, per-tag tracking and leak reporting.

Blocks handed out by the allocators are ``memoryview`` objects over
``bytearray`` storage. Freeing a block releases the view, so later use of it
fails loudly instead of silently touching reused memory.
"""

from __future__ import annotations

import abc
import contextlib
import enum
from dataclasses import dataclass, replace
from typing import Optional, Union

from .assertion import edge_assert
from .environment import is_debug

DEFAULT_ALIGNMENT = 16
SIMD_ALIGNMENT = 16
CACHE_LINE_SIZE = 64


class MemoryTag(enum.IntEnum):
    """Category an allocation is charged to."""

    NO_TAG = 0
    # Core level
    FOREGROUND = 1
    BACKGROUND = 2
    INTERIOR = 3
    # Animation
    ANIMATION = 4
    ANIMATION_LOCOMOTION = 5
    ANIMATION_MOTION_MATCHING = 6
    # Graphics
    PARTICLES = 7
    ACTORS = 8
    # Audio
    AUDIO_GLOBAL = 9
    AUDIO_SFX = 10
    AUDIO_MUSIC = 11
    AUDIO_SPEECH = 12
    AUDIO_VOX = 13
    # AI
    AI = 14
    AI_TASK = 15
    AI_BRAIN = 16
    # Miscellaneous
    GUI = 17
    PHYSICS = 18
    CINEMATIC = 19
    LIGHTING = 20
    GAMEPLAY = 21
    SCRIPT = 22
    NET = 23
    DEBUG = 24
    TEMP = 25


@dataclass
class MemoryStats:
    """Counters describing the traffic through an allocator."""

    total_allocated: int = 0
    total_freed: int = 0
    current_usage: int = 0
    peak_usage: int = 0
    allocation_count: int = 0
    free_count: int = 0

    def _record_allocation(self, size: int) -> None:
        self.total_allocated += size
        self.current_usage += size
        self.allocation_count += 1
        self.peak_usage = max(self.peak_usage, self.current_usage)

    def _record_free(self, size: int) -> None:
        self.total_freed += size
        self.current_usage -= size
        self.free_count += 1

    def _release_all(self) -> None:
        self.total_freed += self.current_usage
        self.current_usage = 0
        self.free_count += self.allocation_count


def align_up(size: int, alignment: int) -> int:
    """Round ``size`` up to a multiple of the power-of-two ``alignment``."""
    return (size + alignment - 1) & ~(alignment - 1)


def align_pointer(address: int, alignment: int) -> int:
    """Round the integer ``address`` up to a multiple of ``alignment``."""
    return (address + alignment - 1) & ~(alignment - 1)


def _check_alignment(alignment: int) -> None:
    if alignment <= 0 or alignment & (alignment - 1):
        raise ValueError("Alignment must be a power of two.")


def _release(view: memoryview) -> None:
    with contextlib.suppress(BufferError):
        view.release()


class Allocator(abc.ABC):
    """Interface shared by every allocator."""

    @abc.abstractmethod
    def allocate(
        self,
        size: int,
        tag: MemoryTag = MemoryTag.NO_TAG,
        alignment: int = DEFAULT_ALIGNMENT,
    ) -> Optional[memoryview]:
        """Return a block of ``size`` bytes, or None when ``size`` is zero."""

    @abc.abstractmethod
    def free(self, block: Optional[memoryview]) -> None:
        """Give ``block`` back to the allocator."""

    @abc.abstractmethod
    def stats(self) -> MemoryStats:
        """Return a snapshot of the allocator's counters."""

    @abc.abstractmethod
    def reset(self) -> None:
        """Return every block to the allocator at once."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release the allocator's resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@dataclass(frozen=True)
class _Record:
    block: memoryview
    size: int
    tag: MemoryTag


class SystemAllocator(Allocator):
    """General purpose allocator that can track every live block."""

    def __init__(self, tracking: Optional[bool] = None) -> None:
        self._tracking = is_debug() if tracking is None else bool(tracking)
        self._stats = MemoryStats()
        self._tag_stats = {tag: MemoryStats() for tag in MemoryTag}
        self._live: dict[int, _Record] = {}

    @property
    def tracking_enabled(self) -> bool:
        """Whether allocations are recorded."""
        return self._tracking

    @tracking_enabled.setter
    def tracking_enabled(self, enabled: bool) -> None:
        edge_assert(
            self._stats.allocation_count == self._stats.free_count,
            "Cannot change tracking state with active allocations!",
        )
        self._tracking = bool(enabled)

    def allocate(
        self,
        size: int,
        tag: MemoryTag = MemoryTag.NO_TAG,
        alignment: int = DEFAULT_ALIGNMENT,
    ) -> Optional[memoryview]:
        if size == 0:
            return None
        if size < 0:
            raise ValueError("size must not be negative")
        _check_alignment(alignment)
        tag = MemoryTag(tag)
        block = memoryview(bytearray(align_up(size, alignment)))[:size]
        if self._tracking:
            self._live[id(block)] = _Record(block, size, tag)
            self._stats._record_allocation(size)
            self._tag_stats[tag]._record_allocation(size)
        return block

    def free(self, block: Optional[memoryview]) -> None:
        if block is None:
            return
        if self._tracking:
            record = self._live.get(id(block))
            if record is None or record.block is not block:
                raise ValueError("Memory corruption detected!")
            del self._live[id(block)]
            self._stats._record_free(record.size)
            self._tag_stats[record.tag]._record_free(record.size)
        _release(block)

    def stats(self) -> MemoryStats:
        return replace(self._stats)

    def tag_stats(self, tag: Union[MemoryTag, int]) -> MemoryStats:
        """Return the counters charged to ``tag``; zeros for an unknown tag."""
        try:
            key = MemoryTag(tag)
        except ValueError:
            return MemoryStats()
        return replace(self._tag_stats[key])

    def reset(self) -> None:
        edge_assert(
            self._stats.allocation_count == self._stats.free_count,
            "Cannot reset allocator with active allocations!",
        )
        self._stats = MemoryStats()
        self._tag_stats = {tag: MemoryStats() for tag in MemoryTag}
        self._live.clear()

    def leak_report(self) -> str:
        """Describe every block still live; empty when nothing leaked."""
        stats = self._stats
        if not self._tracking or stats.allocation_count == stats.free_count:
            return ""
        lines = [
            f"Total leaked memory: {stats.total_allocated - stats.total_freed} bytes",
            f"Total allocations: {stats.allocation_count}, frees: {stats.free_count}",
        ]
        for tag, tag_stats in self._tag_stats.items():
            if tag_stats.allocation_count > tag_stats.free_count:
                lines.append(
                    f"Tag {int(tag)}: Leaked "
                    f"{tag_stats.total_allocated - tag_stats.total_freed} bytes in "
                    f"{tag_stats.allocation_count - tag_stats.free_count} blocks"
                )
        lines.append("")
        lines.append("Detailed leak report:")
        lines.append("-" * 49)
        leaks = list(self._live.values())
        lines.extend(
            f"Leak #{number}: {record.size} bytes (tag: {int(record.tag)})"
            for number, record in enumerate(leaks, start=1)
        )
        lines.append("-" * 49)
        lines.append(f"Total leaks found: {len(leaks)}")
        return "\n".join(lines) + "\n"

    def report_leaks(self) -> None:
        """Print the leak report to standard output."""
        text = self.leak_report()
        if text:
            print(text, end="")

    def close(self) -> None:
        stats = self._stats
        if self._tracking and stats.allocation_count > stats.free_count:
            self.report_leaks()
        edge_assert(stats.allocation_count == stats.free_count, "Memory leak detected!")


class LinearAllocator(Allocator):
    """Bump allocator: fast allocations, no individual frees."""

    def __init__(self, size: int, parent: Optional[SystemAllocator] = None) -> None:
        if size <= 0:
            raise ValueError("Failed to allocate memory for LinearAllocator")
        self._parent = parent if parent is not None else get_system_allocator()
        self._buffer: Optional[memoryview] = self._parent.allocate(
            size, alignment=CACHE_LINE_SIZE
        )
        self._size = size
        self._offset = 0
        self._stats = MemoryStats()

    @property
    def capacity(self) -> int:
        """Total number of bytes the allocator can hand out."""
        return self._size

    def _require_open(self) -> memoryview:
        if self._buffer is None:
            raise ValueError("allocator is closed")
        return self._buffer

    def allocate(
        self,
        size: int,
        tag: MemoryTag = MemoryTag.NO_TAG,
        alignment: int = DEFAULT_ALIGNMENT,
    ) -> Optional[memoryview]:
        buffer = self._require_open()
        if size == 0:
            return None
        if size < 0:
            raise ValueError("size must not be negative")
        _check_alignment(alignment)
        start = align_up(self._offset, alignment)
        if start + size > self._size:
            raise MemoryError("LinearAllocator out of memory")
        self._offset = start + size
        self._stats._record_allocation(size)
        return buffer[start:start + size]

    def free(self, block: Optional[memoryview]) -> None:
        """Individual frees are not supported; the call is ignored."""

    def stats(self) -> MemoryStats:
        return replace(self._stats)

    def reset(self) -> None:
        self._offset = 0
        self._stats._release_all()

    def close(self) -> None:
        if self._buffer is not None:
            self._parent.free(self._buffer)
            self._buffer = None


class PoolAllocator(Allocator):
    """Allocator of fixed-size elements taken from one buffer."""

    def __init__(
        self,
        element_size: int,
        element_count: int,
        alignment: int = DEFAULT_ALIGNMENT,
        parent: Optional[SystemAllocator] = None,
    ) -> None:
        if element_size <= 0 or element_count <= 0:
            raise ValueError("Failed to allocate memory for PoolAllocator")
        _check_alignment(alignment)
        self._parent = parent if parent is not None else get_system_allocator()
        self._element_size = element_size
        self._element_count = element_count
        self._stride = align_up(element_size, alignment)
        self._buffer: Optional[memoryview] = self._parent.allocate(
            self._stride * element_count, alignment=alignment
        )
        self._live: dict[int, tuple[memoryview, int]] = {}
        self._free_slots: list[int] = []
        self._rebuild_free_list()
        self._stats = MemoryStats()

    def _rebuild_free_list(self) -> None:
        # The end of the list is the head: slot 0 is handed out first.
        self._free_slots = list(reversed(range(self._element_count)))

    @property
    def free_count(self) -> int:
        """Number of elements still available."""
        return len(self._free_slots)

    def _require_open(self) -> memoryview:
        if self._buffer is None:
            raise ValueError("allocator is closed")
        return self._buffer

    def allocate(
        self,
        size: int,
        tag: MemoryTag = MemoryTag.NO_TAG,
        alignment: int = DEFAULT_ALIGNMENT,
    ) -> Optional[memoryview]:
        buffer = self._require_open()
        if size > self._element_size:
            raise ValueError("Requested size is larger than pool element size")
        if not self._free_slots:
            raise MemoryError("Pool allocator is out of memory")
        slot = self._free_slots.pop()
        start = slot * self._stride
        block = buffer[start:start + self._element_size]
        self._live[id(block)] = (block, slot)
        self._stats._record_allocation(self._element_size)
        return block

    def free(self, block: Optional[memoryview]) -> None:
        if block is None:
            return
        entry = self._live.get(id(block))
        if entry is None or entry[0] is not block:
            raise ValueError("Pointer does not belong to this pool")
        del self._live[id(block)]
        self._free_slots.append(entry[1])
        self._stats._record_free(self._element_size)
        _release(block)

    def stats(self) -> MemoryStats:
        return replace(self._stats)

    def _release_live(self) -> None:
        for block, _slot in self._live.values():
            _release(block)
        self._live.clear()

    def reset(self) -> None:
        self._release_live()
        self._rebuild_free_list()
        self._stats._release_all()

    def close(self) -> None:
        if self._buffer is not None:
            self._release_live()
            self._parent.free(self._buffer)
            self._buffer = None
            self._free_slots = []


_system_allocator: Optional[SystemAllocator] = None


def initialize() -> None:
    """Create the shared system allocator if it does not exist yet."""
    global _system_allocator
    if _system_allocator is None:
        _system_allocator = SystemAllocator()


def shutdown() -> None:
    """Close and drop the shared system allocator."""
    global _system_allocator
    if _system_allocator is not None:
        allocator, _system_allocator = _system_allocator, None
        allocator.close()


def get_system_allocator() -> SystemAllocator:
    """Return the shared system allocator, creating it on first use."""
    initialize()
    assert _system_allocator is not None
    return _system_allocator


def allocate(size: int, alignment: int = DEFAULT_ALIGNMENT) -> Optional[memoryview]:
    """Allocate from the shared system allocator."""
    return get_system_allocator().allocate(size, alignment=alignment)


def allocate_aligned(size: int, alignment: int) -> Optional[memoryview]:
    """Allocate with an explicit alignment from the shared system allocator."""
    return get_system_allocator().allocate(size, alignment=alignment)


def allocate_tagged(
    size: int, tag: MemoryTag, alignment: int = DEFAULT_ALIGNMENT
) -> Optional[memoryview]:
    """Allocate from the shared system allocator, charging ``tag``."""
    return get_system_allocator().allocate(size, tag, alignment)


def free(block: Optional[memoryview]) -> None:
    """Free a block from the shared system allocator."""
    get_system_allocator().free(block)


def free_aligned(block: Optional[memoryview]) -> None:
    """Free an aligned block from the shared system allocator."""
    get_system_allocator().free(block)


def enable_tracking(enabled: bool) -> None:
    """Switch tracking of the shared system allocator on or off."""
    get_system_allocator().tracking_enabled = enabled


def report_leaks() -> None:
    """Print the leak report of the shared system allocator."""
    get_system_allocator().report_leaks()


def get_stats() -> MemoryStats:
    """Return the counters of the shared system allocator."""
    return get_system_allocator().stats()


def get_tag_stats(tag: Union[MemoryTag, int]) -> MemoryStats:
    """Return the counters the shared system allocator charged to ``tag``."""
    return get_system_allocator().tag_stats(tag)