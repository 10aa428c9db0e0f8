"""groupvault — group messaging backend with envelope-encrypted group keys."""
