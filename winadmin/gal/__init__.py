"""
winadmin.gal - Global Address List synchronization

Directory and contact models, the directory reconciler, and the Outlook
automation adapters.
"""
