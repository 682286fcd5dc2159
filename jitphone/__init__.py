"""jitphone: transpile Objective-C, Swift and engine instruction streams to JavaScript."""

__version__ = "0.1.0"
