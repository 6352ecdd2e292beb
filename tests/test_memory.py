import pytest

from edgecore import memory
from edgecore.assertion import AssertionBreak
from edgecore.memory import (
    CACHE_LINE_SIZE,
    LinearAllocator,
    MemoryStats,
    MemoryTag,
    PoolAllocator,
    SystemAllocator,
    align_pointer,
    align_up,
)


@pytest.fixture(autouse=True)
def release_build(monkeypatch):
    for name in ("DEBUG", "_DEBUG", "NDEBUG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def debug_build(monkeypatch):
    monkeypatch.setenv("DEBUG", "1")


@pytest.fixture
def global_allocator():
    memory.shutdown()
    yield
    memory.shutdown()


@pytest.fixture
def tracked():
    return SystemAllocator(tracking=True)


@pytest.mark.parametrize("size", [0, 1, 7, 8, 13, 100, 4095])
@pytest.mark.parametrize("alignment", [1, 2, 8, 16, 64])
def test_align_up_invariants(size, alignment):
    result = align_up(size, alignment)
    assert result % alignment == 0
    assert size <= result < size + alignment
    assert align_pointer(size, alignment) == result


def test_align_up_already_aligned():
    assert align_up(CACHE_LINE_SIZE, CACHE_LINE_SIZE) == CACHE_LINE_SIZE


def test_memory_tag_ordering(tracked):
    block = tracked.allocate(8, MemoryTag.TEMP)
    assert tracked.tag_stats(len(MemoryTag) - 1).current_usage == 8
    assert tracked.tag_stats(0) == MemoryStats()
    tracked.free(block)
    assert tracked.tag_stats(MemoryTag.TEMP).free_count == 1


def test_system_allocator_tracks_stats(tracked):
    a = tracked.allocate(100)
    b = tracked.allocate(50, MemoryTag.PHYSICS)
    assert len(a) == 100 and len(b) == 50
    stats = tracked.stats()
    assert stats.total_allocated == 150
    assert stats.current_usage == 150
    assert stats.peak_usage == 150
    assert stats.allocation_count == 2
    tracked.free(a)
    stats = tracked.stats()
    assert stats.current_usage == 50
    assert stats.total_freed == 100
    assert stats.peak_usage == 150
    assert stats.free_count == 1
    tracked.free(b)
    assert tracked.stats().current_usage == 0


def test_system_allocator_zero_size(tracked):
    assert tracked.allocate(0) is None
    assert tracked.stats() == MemoryStats()


def test_system_allocator_free_none_is_noop(tracked):
    tracked.free(None)
    assert tracked.stats() == MemoryStats()


def test_system_allocator_rejects_bad_alignment(tracked):
    with pytest.raises(ValueError):
        tracked.allocate(10, alignment=3)


def test_system_allocator_rejects_foreign_block(tracked):
    with pytest.raises(ValueError):
        tracked.free(memoryview(bytearray(4)))


def test_system_allocator_double_free(tracked):
    block = tracked.allocate(8)
    tracked.free(block)
    with pytest.raises(ValueError):
        tracked.free(block)


def test_freed_block_is_unusable(tracked):
    block = tracked.allocate(8)
    tracked.free(block)
    with pytest.raises(ValueError):
        block[0] = 1
    stats = tracked.stats()
    assert stats.free_count == 1
    assert stats.current_usage == 0


def test_tag_stats(tracked):
    block = tracked.allocate(32, MemoryTag.AUDIO_SFX)
    assert tracked.tag_stats(MemoryTag.AUDIO_SFX).current_usage == 32
    assert tracked.tag_stats(MemoryTag.NO_TAG) == MemoryStats()
    assert tracked.tag_stats(len(MemoryTag) + 5) == MemoryStats()
    tracked.free(block)
    assert tracked.tag_stats(MemoryTag.AUDIO_SFX).free_count == 1


def test_stats_snapshot_is_a_copy(tracked):
    snapshot = tracked.stats()
    tracked.allocate(16)
    assert snapshot.allocation_count == 0
    assert tracked.stats().allocation_count == 1


def test_untracked_allocator_keeps_no_stats():
    allocator = SystemAllocator(tracking=False)
    block = allocator.allocate(64)
    assert len(block) == 64
    assert allocator.stats() == MemoryStats()
    assert allocator.leak_report() == ""
    allocator.free(block)


def test_default_tracking_follows_build(debug_build):
    assert SystemAllocator().tracking_enabled is True


def test_default_tracking_off_in_release():
    assert SystemAllocator().tracking_enabled is False


def test_leak_report(tracked):
    tracked.allocate(100, MemoryTag.AUDIO_SFX)
    report = tracked.leak_report()
    assert "Total leaked memory: 100 bytes" in report
    assert "Total allocations: 1, frees: 0" in report
    assert f"Tag {int(MemoryTag.AUDIO_SFX)}: Leaked 100 bytes in 1 blocks" in report
    assert f"Leak #1: 100 bytes (tag: {int(MemoryTag.AUDIO_SFX)})" in report
    assert report.endswith("Total leaks found: 1\n")


def test_leak_report_empty_without_leaks(tracked):
    tracked.free(tracked.allocate(10))
    assert tracked.leak_report() == ""


def test_leak_report_lists_in_allocation_order(tracked):
    tracked.allocate(10)
    middle = tracked.allocate(20)
    tracked.allocate(30)
    tracked.free(middle)
    report = tracked.leak_report()
    assert "Leak #1: 10 bytes" in report
    assert "Leak #2: 30 bytes" in report
    assert "20 bytes (tag" not in report


def test_report_leaks_prints(tracked, capsys):
    tracked.allocate(12)
    tracked.report_leaks()
    assert "Total leaks found: 1" in capsys.readouterr().out


def test_close_with_leaks_in_release_reports(tracked, capsys):
    tracked.allocate(12)
    tracked.close()
    assert "Total leaks found: 1" in capsys.readouterr().out


def test_close_with_leaks_in_debug_breaks(tracked, debug_build, capsys):
    tracked.allocate(12)
    with pytest.raises(AssertionBreak) as excinfo:
        tracked.close()
    assert "Memory leak detected!" in str(excinfo.value)
    assert "Total leaks found: 1" in capsys.readouterr().out


def test_reset_clears_stats(tracked):
    tracked.free(tracked.allocate(10))
    tracked.reset()
    assert tracked.stats() == MemoryStats()


def test_changing_tracking_with_live_blocks_breaks_in_debug(tracked, debug_build):
    tracked.allocate(4)
    with pytest.raises(AssertionBreak) as excinfo:
        tracked.tracking_enabled = False
    assert "Cannot change tracking state" in str(excinfo.value)
    assert tracked.stats().allocation_count == 1


def test_context_manager_closes(capsys):
    with SystemAllocator(tracking=True) as allocator:
        allocator.allocate(5)
    assert "Total leaks found: 1" in capsys.readouterr().out


def test_linear_allocations_and_stats(tracked):
    with LinearAllocator(256, parent=tracked) as linear:
        a = linear.allocate(10)
        b = linear.allocate(20, MemoryTag.TEMP)
        a[:] = b"a" * 10
        b[:] = b"b" * 20
        assert bytes(a) == b"a" * 10
        stats = linear.stats()
        assert stats.total_allocated == 30
        assert stats.allocation_count == 2
        linear.free(a)
        assert linear.stats() == stats
        assert tracked.stats().allocation_count == 1
    assert tracked.stats().free_count == 1


def test_linear_out_of_memory_respects_alignment(tracked):
    linear = LinearAllocator(64, parent=tracked)
    linear.allocate(60, alignment=1)
    with pytest.raises(MemoryError):
        linear.allocate(8, alignment=8)
    assert len(linear.allocate(4, alignment=4)) == 4
    with pytest.raises(MemoryError):
        linear.allocate(1, alignment=1)
    linear.close()


def test_linear_reset(tracked):
    linear = LinearAllocator(64, parent=tracked)
    linear.allocate(64, alignment=1)
    linear.reset()
    stats = linear.stats()
    assert stats.current_usage == 0
    assert stats.total_freed == stats.total_allocated
    assert stats.free_count == stats.allocation_count
    assert len(linear.allocate(64, alignment=1)) == 64
    linear.close()


def test_linear_zero_size_and_closed(tracked):
    linear = LinearAllocator(32, parent=tracked)
    assert linear.allocate(0) is None
    linear.close()
    with pytest.raises(ValueError):
        linear.allocate(1)


def test_linear_requires_positive_size(tracked):
    with pytest.raises(ValueError):
        LinearAllocator(0, parent=tracked)


def test_pool_exhaustion(tracked):
    pool = PoolAllocator(16, 3, parent=tracked)
    blocks = [pool.allocate(16) for _ in range(3)]
    assert all(len(block) == 16 for block in blocks)
    assert pool.free_count == 0
    with pytest.raises(MemoryError):
        pool.allocate(8)
    pool.close()


def test_pool_rejects_oversized_request(tracked):
    pool = PoolAllocator(16, 2, parent=tracked)
    with pytest.raises(ValueError):
        pool.allocate(17)
    pool.close()


def test_pool_counts_element_size(tracked):
    pool = PoolAllocator(24, 2, parent=tracked)
    pool.allocate(1)
    assert pool.stats().current_usage == 24
    pool.close()


def test_pool_reuses_most_recently_freed(tracked):
    pool = PoolAllocator(8, 4, parent=tracked)
    first = pool.allocate(8)
    first[:] = b"xxxxxxxx"
    pool.allocate(8)
    pool.free(first)
    again = pool.allocate(8)
    assert bytes(again) == b"xxxxxxxx"
    assert pool.free_count == 2
    pool.close()


def test_pool_rejects_foreign_and_double_free(tracked):
    pool = PoolAllocator(8, 2, parent=tracked)
    other = PoolAllocator(8, 2, parent=tracked)
    block = other.allocate(8)
    with pytest.raises(ValueError):
        pool.free(block)
    other.free(block)
    with pytest.raises(ValueError):
        other.free(block)
    pool.close()
    other.close()


def test_pool_reset(tracked):
    pool = PoolAllocator(8, 2, parent=tracked)
    pool.allocate(8)
    pool.allocate(8)
    pool.reset()
    stats = pool.stats()
    assert pool.free_count == 2
    assert stats.current_usage == 0
    assert stats.free_count == stats.allocation_count
    pool.close()


def test_pool_returns_buffer_to_parent(tracked):
    with PoolAllocator(8, 4, parent=tracked):
        assert tracked.stats().allocation_count == 1
        assert tracked.stats().current_usage >= 32
    assert tracked.stats().current_usage == 0
    assert tracked.leak_report() == ""


def test_pool_invalid_arguments(tracked):
    with pytest.raises(ValueError):
        PoolAllocator(8, 0, parent=tracked)
    with pytest.raises(ValueError):
        PoolAllocator(8, 2, alignment=6, parent=tracked)


def test_global_allocator_roundtrip(global_allocator):
    memory.enable_tracking(True)
    block = memory.allocate_tagged(40, MemoryTag.GUI)
    other = memory.allocate(10)
    assert memory.get_stats().current_usage == 50
    assert memory.get_tag_stats(MemoryTag.GUI).current_usage == 40
    memory.free(block)
    memory.free_aligned(other)
    assert memory.get_stats().current_usage == 0
    assert memory.get_system_allocator() is memory.get_system_allocator()


def test_global_allocate_aligned_rejects_bad_alignment(global_allocator):
    with pytest.raises(ValueError):
        memory.allocate_aligned(8, 12)


def test_global_report_leaks(global_allocator, capsys):
    memory.enable_tracking(True)
    block = memory.allocate(7)
    memory.report_leaks()
    assert "Leak #1: 7 bytes" in capsys.readouterr().out
    memory.free(block)


def test_shutdown_replaces_allocator(global_allocator):
    first = memory.get_system_allocator()
    memory.shutdown()
    assert memory.get_system_allocator() is not first


def test_linear_default_parent_is_global(global_allocator):
    memory.enable_tracking(True)
    linear = LinearAllocator(128)
    assert memory.get_stats().allocation_count == 1
    linear.close()
    assert memory.get_stats().free_count == 1