"""Lifecycle of CI builds: numbering, config normalization, queries and requeue."""
