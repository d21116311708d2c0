# providers/__init__.py
# Synkuru - upstream services (AniList sync, id mapping, metadata)
