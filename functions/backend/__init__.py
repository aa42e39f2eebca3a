"""
Backend collaborators for the Cloud Functions.

This package provides the configuration and the document store, billing and
messaging abstractions, each with an in-memory implementation so the
functions can be exercised without Firebase or Stripe.
"""
