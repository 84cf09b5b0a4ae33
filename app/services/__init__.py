# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# the business rules for a single domain aggregate:
#
#   account_service  — registration, login, profile updates, cascade delete
#   post_service     — CRUD + view counter + author authorization for Post
#   comment_service  — CRUD for the comments of one Post
#
# All service functions accept a ``Store`` as their first argument and the
# caller identity as an explicit parameter where it matters, so the router
# layer owns both the backend choice and the transaction boundary through
# the ``get_store`` dependency. Failures are raised as ``app.exceptions``
# errors.
