"""
Anime catalog feature: schemas, list query builder, tag sync, repository,
service and routes.
"""
