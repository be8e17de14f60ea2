"""
Business operations for packages, payments, subscriptions and ad benefits.

Route handlers stay thin: they parse the request, call one of these
functions and render the result. Failures are raised as utils.errors types.
"""
