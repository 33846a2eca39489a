"""
Services Layer

- bracket_generator, standings, seeding, advancement: pure functions over
  in-memory bracket data (no session, no I/O)
- draw_service: the only module that reads and writes the database
"""
