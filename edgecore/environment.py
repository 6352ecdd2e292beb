"""Detection of the running environment and validation against project support."""

from __future__ import annotations

import enum
import inspect
import os
import platform
import re
import sys
import warnings
from dataclasses import dataclass


class UnsupportedEnvironmentError(RuntimeError):
    """Raised when the running environment is unknown or disabled by configuration."""


class BuildType(enum.Enum):
    """Whether the process runs as a debug or a release build."""

    DEBUG = "Debug"
    RELEASE = "Release"


@dataclass(frozen=True)
class GlobalConfig:
    """Project-wide support settings for platforms, toolchains and language versions."""

    windows_supported: bool = True
    macos_supported: bool = True
    ios_supported: bool = True
    android_supported: bool = True
    msvc_supported: bool = True
    clang_supported: bool = True
    gcc_supported: bool = True
    min_version: tuple[int, int] = (3, 10)
    max_version: tuple[int, int] = (3, 13)
    preferred_version: tuple[int, int] = (3, 12)
    profile: bool = False
    test: bool = False
    hack: bool = False
    temp_hack: bool = False
    temp: bool = False
    dll: bool = False
    lib: bool = False


@dataclass(frozen=True)
class EnvironmentInfo:
    """A snapshot of the detected environment."""

    implementation: str
    implementation_version: int
    platform: str
    architecture: str
    build_type: BuildType
    language_version: tuple[int, int]


# Checked in priority order: an interpreter built by MSVC wins over Clang, Clang over GCC.
_COMPILER_PATTERNS = (
    ("MSVC", re.compile(r"MSC v\.(\d+)")),
    ("Clang", re.compile(r"[Cc]lang (\d+)\.(\d+)")),
    ("GCC", re.compile(r"GCC (\d+)\.(\d+)")),
)

_IMPLEMENTATION_SUPPORT = {
    "MSVC": ("msvc_supported", "MSVC compiler"),
    "Clang": ("clang_supported", "Clang compiler"),
    "GCC": ("gcc_supported", "GCC compiler"),
}

_PLATFORM_SUPPORT = {
    "Windows": ("windows_supported", "Windows platform"),
    "macOS": ("macos_supported", "macOS platform"),
    "iOS": ("ios_supported", "iOS platform"),
    "Android": ("android_supported", "Android platform"),
}

_ARCHITECTURES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "arm64": "ARM64",
    "aarch64": "ARM64",
}


def detect_implementation() -> tuple[str, int]:
    """Return the toolchain that built the interpreter and its numeric version."""
    text = platform.python_compiler()
    for name, pattern in _COMPILER_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        if name == "MSVC":
            return name, int(match.group(1))
        major, minor = (int(part) for part in match.groups())
        return name, major * 100 + minor
    raise UnsupportedEnvironmentError("Unsupported compiler!")


def detect_platform() -> str:
    """Return the name of the operating system platform."""
    name = sys.platform
    if name == "win32":
        if sys.maxsize <= 2**32:
            raise UnsupportedEnvironmentError(
                "Win32 is not a supported platform. Please run a 64-bit (x64) interpreter."
            )
        return "Windows"
    if name == "darwin":
        return "macOS"
    if name == "ios":
        return "iOS"
    if name == "android" or (name == "linux" and hasattr(sys, "getandroidapilevel")):
        return "Android"
    raise UnsupportedEnvironmentError("Unsupported platform!")


def detect_architecture() -> str:
    """Return ``"x64"`` or ``"ARM64"`` for the running machine."""
    try:
        return _ARCHITECTURES[platform.machine().lower()]
    except KeyError:
        raise UnsupportedEnvironmentError(
            "Unsupported architecture! Must be x64 or ARM64."
        ) from None


def detect_build_type() -> BuildType:
    """Return the build type selected by the ``_DEBUG``, ``DEBUG`` and ``NDEBUG`` variables."""
    env = os.environ
    if "_DEBUG" in env or ("DEBUG" in env and "NDEBUG" not in env):
        return BuildType.DEBUG
    return BuildType.RELEASE


def detect_language_version() -> tuple[int, int]:
    """Return the running Python version as ``(major, minor)``."""
    return (sys.version_info.major, sys.version_info.minor)


def is_debug() -> bool:
    """Return True when running as a debug build."""
    return detect_build_type() is BuildType.DEBUG


def detect_environment() -> EnvironmentInfo:
    """Detect every aspect of the running environment."""
    name, version = detect_implementation()
    return EnvironmentInfo(
        implementation=name,
        implementation_version=version,
        platform=detect_platform(),
        architecture=detect_architecture(),
        build_type=detect_build_type(),
        language_version=detect_language_version(),
    )


def _format_version(version: tuple[int, int]) -> str:
    return ".".join(str(part) for part in version)


def validate_environment(info: EnvironmentInfo, config: GlobalConfig) -> None:
    """Raise UnsupportedEnvironmentError if ``config`` disables any part of ``info``."""
    for key, table in (
        (info.implementation, _IMPLEMENTATION_SUPPORT),
        (info.platform, _PLATFORM_SUPPORT),
    ):
        if key in table:
            attribute, label = table[key]
            if not getattr(config, attribute):
                raise UnsupportedEnvironmentError(
                    f"This project has disabled support for the {label}."
                )
    if info.language_version < config.min_version:
        raise UnsupportedEnvironmentError(
            "Python version is too old! This project requires at least "
            f"Python {_format_version(config.min_version)}."
        )


def version_warnings(info: EnvironmentInfo, config: GlobalConfig) -> list[str]:
    """Return the warnings the language version deserves under ``config``."""
    messages = []
    if info.language_version > config.max_version:
        messages.append(
            "Warning: Running on a Python version newer than the maximum "
            "supported version specified by the project."
        )
    if info.language_version != config.preferred_version:
        messages.append("Warning: This Python version is not the project's preferred version.")
    return messages


def compile_warning(message: str) -> None:
    """Emit a warning attributed to the caller's location."""
    warnings.warn(message, UserWarning, stacklevel=2)


def compile_error(message: str) -> None:
    """Raise an error whose text names the caller's file and line."""
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    if caller is None:
        raise RuntimeError(f"Error: {message}")
    location = f"{caller.f_code.co_filename}({caller.f_lineno})"
    raise RuntimeError(f"{location} : Error: {message}")