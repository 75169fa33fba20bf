"""
Core Synchronization Logic
==========================

This package contains the foundational logic of the admin console: the
Content API client, the retry executor, entity drafts and the form wizard,
the collection reconciler, the upload orchestrator, and the dashboard that
ties them together.
"""
