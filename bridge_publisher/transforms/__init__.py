"""Body and frontmatter transform factories."""
