"""
Messaging Services Package
Conversations, system messages, in-app and email notifications
"""
