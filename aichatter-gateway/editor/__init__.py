"""AI-Chatter Bridge -- editor-side components."""
