"""App collaborators (Mail, Contacts, Notes, Messages, Reminders).

Nothing is imported here: the server's ModuleLoader decides when each
collaborator module is imported.
"""
