"""Reading markdown: repositories, documents, frontmatter and sections."""
