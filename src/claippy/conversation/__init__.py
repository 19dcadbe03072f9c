"""Conversation storage — messages, context entries and the active pointer.

Layout:
    <project>/.claippy/
    ├── ACTIVE                         # id of the active conversation
    ├── history                        # REPL line history
    └── conversations/
        └── <id>.md                    # YAML frontmatter record + transcript body

The data directory lives next to the nearest `.git` so every subdirectory of a
repository shares the same conversations.
"""
