"""Rules engine: rule tables, content index, resolvers and granting."""
