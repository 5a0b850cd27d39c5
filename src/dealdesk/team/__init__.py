"""Team module -- user directory, tasks, availability and the team board."""
