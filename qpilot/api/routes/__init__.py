"""
Route modules.
"""
