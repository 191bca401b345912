"""
API server package — HTTP presentation binding for the session monitor.
"""
