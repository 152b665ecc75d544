"""Mirror of forum-hosted documentation topics, served as plain HTML."""
