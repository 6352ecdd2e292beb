# edgecore

A small library of core runtime utilities:

- **Environment detection** (`edgecore.environment`). It detects the toolchain
  that built the interpreter, the platform, the architecture, the build type
  and the Python version. It can check them against a `GlobalConfig` of
  supported environments.
- **Levelled assertions** (`edgecore.assertion`). These are `edge_assert`,
  `verify`, `assert_fatal`, `assert_warn` and `assert_message`, with a shared
  `AssertHandler` that accepts a custom callback.
- **Tracked allocators** (`edgecore.memory`). These are `SystemAllocator`,
  `LinearAllocator` and `PoolAllocator`, each keeping `MemoryStats`.
- **An interactive test menu** (`edgecore.cli`), installed as the `edgecore`
  command.

It has no dependencies outside the standard library.

## Installation

```
pip install .
```

To include the test dependencies:

```
pip install ".[test]"
```

## Build type

`detect_build_type()` returns `BuildType.DEBUG` in either of two cases:

- the environment variable `_DEBUG` is set;
- `DEBUG` is set and `NDEBUG` is not.

Otherwise it returns `BuildType.RELEASE`. `is_debug()` reports the same thing as a bool. Several other parts of the package depend on it:

- `edge_assert` checks its condition only in a debug build.
- Error-level assertions stop execution only in a debug build.
- A `SystemAllocator` created without an explicit `tracking` argument tracks allocations only in a debug build.

## Assertions

```python
from edgecore.assertion import AssertHandler, assert_warn, verify

seen = []
AssertHandler.get().set_callback(seen.append)

assert_warn(1 == 2, "values differ")   # reported, execution continues
verify(len(seen) == 1, "callback was called")

AssertHandler.get().reset_callback()
```

Every failed assertion is printed to standard error. If a callback is
registered, it also receives the `AssertInfo`. The condition text is read
from the calling source line. The message looks like this:

```
[WARNING] Assertion Failed: 1 == 2 (values differ)
  at path/to/file.py:6
```

The `AssertLevel` decides whether execution stops:

| Level     | Used by                   | Stops execution      |
|-----------|---------------------------|----------------------|
| `INFO`    | `assert_message`          | never                |
| `WARNING` | `assert_warn`             | never                |
| `ERROR`   | `edge_assert`, `verify`   | in debug builds only |
| `FATAL`   | `assert_fatal`            | always               |

Execution stops by raising `AssertionBreak`, which is a subclass of
`AssertionError`. The exception carries the `AssertInfo` as `.info`.
`format_assert_message(info)` returns the reported text.

## Memory

Blocks are `memoryview` objects. Freeing a block releases its view, so any
later use of that block raises an error.

```python
from edgecore.memory import LinearAllocator, MemoryTag, PoolAllocator, SystemAllocator

system = SystemAllocator(tracking=True)
block = system.allocate(128, MemoryTag.AUDIO_SFX, 16)
print(system.stats().current_usage)                    # 128
print(system.tag_stats(MemoryTag.AUDIO_SFX).allocation_count)  # 1
system.free(block)
system.close()

with LinearAllocator(1024) as arena:
    arena.allocate(100, MemoryTag.NO_TAG, 8)
    arena.reset()                                      # frees everything at once

with PoolAllocator(32, 4) as pool:
    slot = pool.allocate(32)
    pool.free(slot)
```

### `SystemAllocator`

- It records live blocks, per-tag statistics and leaks only while tracking is
  on. You can switch tracking with the `tracking_enabled` property.
- `leak_report()` returns a text report of the blocks that are still live.
- `report_leaks()` prints that report.
- `close()` prints the report if anything leaked.
- Freeing a block it does not know raises `ValueError`.

### `LinearAllocator`

- Allocations move forward through one buffer.
- `free()` is ignored.
- Running out of space raises `MemoryError`.

### `PoolAllocator`

- It hands out fixed-size elements.
- Asking for a size larger than the element size raises `ValueError`.
- An exhausted pool raises `MemoryError`.
- Freeing a foreign block raises `ValueError`.

### Shared allocator and alignment helpers

These module-level functions work on one shared `SystemAllocator`: `allocate`,
`allocate_aligned`, `allocate_tagged`, `free`, `free_aligned`,
`enable_tracking`, `report_leaks`, `get_stats` and `get_tag_stats`.
`initialize()` creates the shared allocator and `shutdown()` closes it.
`get_system_allocator()` returns it, creating it on first use.

`align_up(size, alignment)` rounds a size up to a power-of-two alignment.
`align_pointer(address, alignment)` does the same for an integer address.

## Environment

```python
from edgecore.environment import GlobalConfig, detect_environment, validate_environment, version_warnings

info = detect_environment()
config = GlobalConfig()
validate_environment(info, config)   # raises UnsupportedEnvironmentError if disabled
for warning in version_warnings(info, config):
    print(warning)
```

Detection raises `UnsupportedEnvironmentError` when the running environment
falls outside the supported set:

- Platforms: only Windows (64-bit), macOS, iOS and Android are recognised. On
  Linux and other systems, `detect_platform()` and `detect_environment()`
  raise.
- Architectures: only x64 and ARM64.
- Toolchains: only MSVC, Clang and GCC.

`compile_warning(message)` issues a `UserWarning` attributed to the caller.
`compile_error(message)` raises a `RuntimeError` naming the caller's file and
line. Both happen at run time.

## Command line

```
edgecore
```

This shows a menu of checks: compiler, compiler version, platform, build
configuration, architecture, global support, Python version, error, warning and
assertion. Enter a digit to run a check. Any other input, or end of input,
exits.

The process exits with status 1 if an assertion stops execution. This happens
with option `0` in a debug build.

## Limitations

- The allocators do not hand out raw native memory. Blocks are views over
  Python `bytearray` storage.
- Alignment only affects sizes and offsets within that storage, not real
  machine addresses.
- Nothing is stored between runs.