"""AI-Chatter Bridge -- local command execution."""
