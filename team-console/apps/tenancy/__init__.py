"""
Tenancy models: companies and the user accounts affiliated with them.
"""
