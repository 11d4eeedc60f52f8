# Contains the TMDb record source used by the tmdb command
import logging
import random
import time

import requests

from ..config import (
    TMDB_API_BASE_URL,
    TMDB_DEFAULT_LANGUAGE,
    TMDB_MIN_INTERVAL_SECONDS,
    tmdb_api_key_from_env,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset([429, 500, 502, 503, 504])


class TmdbClientError(RuntimeError):
    """A TMDb request failed for good (after retries, or with a non-retryable status)."""

    def __init__(self, message, *, status_code=None, body_snippet=None):
        super().__init__(message)
        self.status_code = status_code
        self.body_snippet = body_snippet


class TmdbClient:
    """
    Minimal TMDb v3 client.

    Requests are made one at a time, spaced at least min_interval_seconds
    apart. Connection errors and 429/5xx responses are retried with
    exponential backoff; anything else raises TmdbClientError.
    """

    max_attempts = 3

    def __init__(self, api_key=None, *, session=None, min_interval_seconds=TMDB_MIN_INTERVAL_SECONDS,
                 language=TMDB_DEFAULT_LANGUAGE, timeout_seconds=20.0):
        self.api_key = (api_key or "").strip() or tmdb_api_key_from_env()
        if not self.api_key:
            raise TmdbClientError("TMDB_API_KEY is not set.")
        self.session = session or requests.Session()
        self.min_interval_seconds = min_interval_seconds
        self.language = language
        self.timeout_seconds = timeout_seconds
        self._last_request_at = None

    def _throttle(self):
        if self._last_request_at is not None:
            wait = self.min_interval_seconds - (time.monotonic() - self._last_request_at)
            if wait > 0:
                time.sleep(wait)
        self._last_request_at = time.monotonic()

    @staticmethod
    def _retry_delay(attempt, retry_after=None):
        """Exponential backoff with up to 25% jitter, never shorter than Retry-After."""
        delay = 2.0 ** attempt
        retry_after = (retry_after or "").strip()
        if retry_after.isdigit():
            delay = max(delay, float(retry_after))
        return delay + random.uniform(0.0, delay * 0.25)

    def _send(self, url, params):
        """
        GET url, retrying transient failures.

        Returns:
            requests.Response: a 200 response
        """
        for attempt in range(self.max_attempts):
            last_attempt = attempt == self.max_attempts - 1
            self._throttle()
            try:
                resp = self.session.get(url, params=params, headers={"accept": "application/json"},
                                        timeout=self.timeout_seconds)
            except requests.RequestException as e:
                if last_attempt:
                    raise TmdbClientError(f"TMDb request failed: {e}") from e
                logger.warning("TMDb request to %s failed (%s), retrying", url, e)
                time.sleep(self._retry_delay(attempt))
                continue

            if resp.status_code == 200:
                return resp
            if resp.status_code in RETRYABLE_STATUS_CODES and not last_attempt:
                logger.warning("TMDb returned HTTP %s for %s, retrying", resp.status_code, url)
                time.sleep(self._retry_delay(attempt, resp.headers.get("Retry-After")))
                continue
            raise TmdbClientError(
                f"TMDb request failed with HTTP {resp.status_code}.",
                status_code=resp.status_code,
                body_snippet=(resp.text or "")[:400],
            )

    def get_json(self, path, params=None):
        """
        Fetch one TMDb endpoint.

        Args:
            path: Endpoint path relative to the API root, e.g. "movie/550"
            params: Extra query parameters (api_key and language are always sent)

        Returns:
            dict: the decoded JSON object
        """
        url = f"{TMDB_API_BASE_URL}/{path.lstrip('/')}"
        query = {"api_key": self.api_key, "language": self.language}
        query.update(params or {})
        resp = self._send(url, query)

        try:
            payload = resp.json()
        except ValueError as e:
            raise TmdbClientError("TMDb returned non-JSON response.", status_code=resp.status_code,
                                  body_snippet=(resp.text or "")[:400]) from e
        if not isinstance(payload, dict):
            raise TmdbClientError("TMDb returned unexpected JSON shape (not an object).")
        return payload

    def top_rated_movies(self, page=1):
        return self.get_json("movie/top_rated", {"page": page})

    def movie_details(self, movie_id):
        return self.get_json(f"movie/{movie_id}")

    def movie_credits(self, movie_id):
        return self.get_json(f"movie/{movie_id}/credits")

    def person_details(self, person_id):
        return self.get_json(f"person/{person_id}")


def iter_tmdb_records(client, pages=1):
    """
    Yield (table_name, record) pairs for the top-rated movies.

    For each movie: its details ("movies"), then every cast credit ("cast")
    followed by the credited person ("people") unless already fetched, then the
    same for the crew ("crew"). Credits get the movie's id as "movieId".
    """
    fetched_people = set()

    for page in range(1, pages + 1):
        movies = client.top_rated_movies(page).get("results") or []
        logger.info("Processing %d%s movies...", len(movies), " more" if page > 1 else "")

        for movie in movies:
            movie_id = movie.get("id")
            logger.info("Querying movie: %s", movie.get("title"))
            yield "movies", client.movie_details(movie_id)

            logger.info("Querying credits for movie: %s", movie.get("title"))
            credits = client.movie_credits(movie_id)
            for table_name in ("cast", "crew"):
                for raw_credit in credits.get(table_name) or []:
                    yield table_name, {**raw_credit, "movieId": movie_id}

                    person_id = raw_credit.get("id")
                    if person_id is None or person_id in fetched_people:
                        continue
                    fetched_people.add(person_id)
                    logger.info("Querying person: %s", raw_credit.get("name"))
                    yield "people", client.person_details(person_id)
