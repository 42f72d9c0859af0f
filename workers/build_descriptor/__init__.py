"""
build_descriptor: static checker for Android app-module build scripts.

Reads a Gradle build script (Kotlin DSL or Groovy), assembles an immutable
build descriptor, validates it, and resolves its declared dependencies.
"""

__version__ = "0.1.0"
CHECKER_VERSION = "v0"
PACKAGE_NAME = "build_descriptor"
SCHEMA_VERSION = "0.1"
