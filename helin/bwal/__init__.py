"""Buffered, segmented write-ahead log: segment files, readers, writers and errors."""