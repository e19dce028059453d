# TrackFlow: kanban boards, columns and tasks as an in-process data model.
#
# Components:
#   schema.py      - Data model (Board, Column, Task, IssueType)
#   store.py       - Board repository, all mutations
#   reorder.py     - Drag-reorder engine and gesture tracking
#   views.py       - Read-only groupings and summaries
#   events.py      - Event bus for committed mutations
#   persistence.py - Key-value stores and whole-state JSON save/load
#   users.py       - User directory and login session
#   permissions.py - Roles and the role → permission table
#   workspace.py   - Composition layer with permission checks and autosave
#   config.py      - YAML configuration and logging setup
