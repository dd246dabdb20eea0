"""
Service layer: recurrence expansion, meeting persistence and lifecycle,
notifications and meeting notes.
"""
