"""
Tests for the public API endpoints.
"""

from api.db_retry import DatabaseRetryableError


class TestPublicAPIHTTP:
    """HTTP-level tests for the public homepage endpoints."""

    def test_health_check(self, public_client):
        response = public_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_sections_empty(self, public_client):
        response = public_client.get("/api/sections")
        assert response.status_code == 200
        assert response.json() == {"sections": [], "count": 0}

    def test_admin_routes_not_exposed(self, public_client):
        assert public_client.post("/api/sections", json={"title": "X"}).status_code == 405
        assert public_client.get("/api/videos").status_code == 404

    def test_sections_shape(self, public_client, insert_video, insert_section, insert_ref):
        video_id = insert_video(title="Intro", optimized_url="https://cdn.example.com/intro-720p.mp4", duration=95)
        section_id = insert_section("Featured", layout_type="slider")
        insert_ref(section_id, video_id)

        data = public_client.get("/api/sections").json()

        assert data["count"] == 1
        (section,) = data["sections"]
        assert section["id"] == section_id
        assert section["title"] == "Featured"
        assert section["layout_type"] == "slider"
        assert section["slider_config"]["autoplay"] is True
        assert "order" not in section
        assert "visible" not in section
        (video,) = section["videos"]
        assert video == {
            "id": video_id,
            "title": "Intro",
            "description": "",
            "url": "https://cdn.example.com/intro-720p.mp4",
            "thumbnail_url": "https://cdn.example.com/thumbs/thumb.jpg",
            "duration": "1:35",
            "settings": {"autoplay": False, "loop": False, "muted": True, "controls": True, "plays_inline": True},
        }

    def test_sections_and_videos_in_order(self, public_client, insert_video, insert_section, insert_ref):
        first, second = insert_video(title="First"), insert_video(title="Second")
        later = insert_section("Later", position=1)
        earlier = insert_section("Earlier", position=0)
        for section_id in (later, earlier):
            insert_ref(section_id, second, position=1)
            insert_ref(section_id, first, position=0)

        sections = public_client.get("/api/sections").json()["sections"]

        assert [s["title"] for s in sections] == ["Earlier", "Later"]
        assert [v["title"] for v in sections[0]["videos"]] == ["First", "Second"]

    def test_hidden_and_empty_sections_left_out(self, public_client, insert_video, insert_section, insert_ref):
        video_id = insert_video()
        insert_ref(insert_section("Hidden", visible=False), video_id)
        insert_section("Empty")
        insert_ref(insert_section("Shown"), video_id)

        data = public_client.get("/api/sections").json()

        assert [s["title"] for s in data["sections"]] == ["Shown"]
        assert data["count"] == 1

    def test_deleted_video_skipped(self, public_client, insert_video, insert_section, insert_ref, delete_video_row):
        gone = insert_video(title="Gone")
        kept = insert_video(title="Kept")
        insert_ref(insert_section("Broken"), gone)
        mixed = insert_section("Mixed")
        insert_ref(mixed, gone)
        insert_ref(mixed, kept)
        delete_video_row(gone)

        response = public_client.get("/api/sections")

        assert response.status_code == 200
        (section,) = response.json()["sections"]
        assert section["title"] == "Mixed"
        assert [v["title"] for v in section["videos"]] == ["Kept"]

    def test_ref_title_overrides_video_title(self, public_client, insert_video, insert_section, insert_ref):
        insert_ref(insert_section(), insert_video(title="Library"), title="Homepage cut")

        (section,) = public_client.get("/api/sections").json()["sections"]

        assert section["videos"][0]["title"] == "Homepage cut"

    def test_security_headers(self, public_client):
        response = public_client.get("/api/sections")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Request-ID" in response.headers

    def test_database_failure_is_503_not_empty(self, public_client, monkeypatch):
        async def unavailable():
            raise DatabaseRetryableError("Database operation failed after 4 attempts: deadlock detected")

        monkeypatch.setattr("api.public.list_visible_sections_with_playable_videos", unavailable)

        response = public_client.get("/api/sections")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"
