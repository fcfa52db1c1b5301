"""DocPanel - content lifecycle backend for documentation, changelogs, roadmaps and knowledge bases."""
