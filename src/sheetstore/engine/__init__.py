"""sheetstore.engine -- the row-store engine.

Module Map
----------
  addressing   zero-based rectangles to A1 range strings
  quota        fixed-window request budget
  constraint   unique column sets and their header encoding
  schema       column kinds, record introspection, header rows
  index        digest-keyed uniqueness index
  table        Table operations and sync state
  database     tables of one container
  manager      databases, throttle ownership
"""
