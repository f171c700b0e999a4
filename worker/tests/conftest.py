import sys
from pathlib import Path

import pytest

# Ensure `soakmap` package is importable when running pytest from the worker directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from soakmap.etl.dedup import haversine_miles  # noqa: E402
from soakmap.models import ExistingSpring, SpringRecord  # noqa: E402


class FakeStore:
    """In-memory stand-in for SpringStore."""

    def __init__(self):
        self.rows = []
        self.fail_batches = False
        self.fail_slugs = set()
        self.batch_calls = 0
        self.single_calls = 0
        self.nearby_calls = 0

    def add_existing(self, name, lat, lng, slug=None, source_id=None, state="OR"):
        spring = ExistingSpring(
            id=str(len(self.rows) + 1),
            name=name,
            slug=slug or name.lower().replace(" ", "-") + "-or",
            state=state,
            lat=lat,
            lng=lng,
            source_id=source_id,
        )
        self.rows.append(spring)
        return spring

    def _insert(self, record):
        if any(row.slug == record.slug for row in self.rows):
            return False
        self.add_existing(record.name, record.lat, record.lng, slug=record.slug, source_id=record.source_id)
        return True

    def upsert_batch(self, records):
        self.batch_calls += 1
        if self.fail_batches:
            raise RuntimeError("batch rejected")
        return sum(1 for record in records if self._insert(record))

    def upsert_one(self, record):
        self.single_calls += 1
        if record.slug in self.fail_slugs:
            raise RuntimeError(f"bad row {record.slug}")
        return self._insert(record)

    def nearby(self, lat, lng, radius_miles):
        self.nearby_calls += 1
        return [row for row in self.rows if haversine_miles(lat, lng, row.lat, row.lng) <= radius_miles]

    def existing_keys(self, slugs, source_ids):
        slugs, source_ids = set(slugs), set(source_ids)
        return (
            {row.slug for row in self.rows if row.slug in slugs},
            {row.source_id for row in self.rows if row.source_id in source_ids},
        )


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def make_record():
    def factory(name="Bagby Hot Springs", lat=44.936, lng=-122.173, **overrides):
        slug = overrides.pop("slug", name.lower().replace(" ", "-") + "-or")
        values = dict(
            name=name,
            slug=slug,
            state="OR",
            lat=lat,
            lng=lng,
            spring_type="hot",
            experience_type="primitive",
            access_difficulty="moderate_hike",
            fee_type="unknown",
            description=f"{name} is a hot spring in Oregon.",
            source="soakoregon",
            source_id=f"soakoregon-{slug}",
            temp_f=None,
            confidence="high",
        )
        values.update(overrides)
        return SpringRecord(**values)

    return factory


def build_listing_page(
    title="Bagby Hot Springs",
    body="",
    map_src=None,
    paragraphs=None,
):
    paragraphs = paragraphs if paragraphs is not None else [
        "Bagby Hot Springs is a historic bathhouse deep in the Mount Hood National Forest.",
        "Hand-hewn cedar tubs are filled from a hot spring flowing through wooden flumes.",
    ]
    iframe = f'<iframe src="{map_src}"></iframe>' if map_src else ""
    paragraph_html = "".join(f"<p>{text}</p>" for text in paragraphs)
    return f"""
    <html>
      <head><title>{title} | Soak Oregon</title></head>
      <body>
        <header><nav>Home</nav></header>
        <article>
          <h1 class="entry-title">{title}</h1>
          <div class="entry-content">
            {paragraph_html}
            <p>{body}</p>
            {iframe}
          </div>
        </article>
        <footer><p>© 2024 Soak Oregon. All rights reserved. Cookie policy applies.</p></footer>
      </body>
    </html>
    """


@pytest.fixture
def listing_page():
    return build_listing_page
