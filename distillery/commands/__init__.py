"""Command-line commands: the clean command for orphaned binaries."""