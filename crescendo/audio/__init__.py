"""Audio acquisition: live input, recorded files and analysis frames."""
