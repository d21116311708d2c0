# /providers/sync/__init__.py
# Synkuru tracker modules
