"""External collaborators: git, the hosting API and archive downloads."""
