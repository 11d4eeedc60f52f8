from .tmdb import TmdbClient, TmdbClientError, iter_tmdb_records

__all__ = [
    'TmdbClient',
    'TmdbClientError',
    'iter_tmdb_records'
]
