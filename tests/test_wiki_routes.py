import pytest

from tests.conftest import register


def _create_page(client, headers, slug, content):
    resp = client.post(f"/wiki/{slug}/edit", data={"content": content}, headers=headers)
    assert resp.status_code == 302
    assert resp.headers["location"] == f"/wiki/{slug}"
    return resp


@pytest.mark.parametrize("path", ["/", "/wiki"])
@pytest.mark.parametrize("method", ["GET", "POST"])
def test_index_is_public(client, path, method):
    resp = client.request(method, path)
    assert resp.status_code == 200
    assert "No pages yet." in resp.text


def test_index_lists_slugs(client, alice):
    _create_page(client, alice, "first", "one")
    _create_page(client, alice, "second", "two")
    resp = client.get("/wiki")
    assert 'href="/wiki/first"' in resp.text
    assert 'href="/wiki/second"' in resp.text


def test_new_page_requires_login(client):
    for method in ("GET", "POST"):
        resp = client.request(method, "/wiki/new")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/login"


def test_new_page_form(client, alice):
    resp = client.get("/wiki/new", headers=alice)
    assert resp.status_code == 200
    assert 'name="slug"' in resp.text


def test_new_page_redirects_to_editor(client, alice):
    resp = client.post("/wiki/new", data={"slug": "ideas"}, headers=alice)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/wiki/ideas/edit"


def test_new_page_requires_slug(client, alice):
    resp = client.post("/wiki/new", data={"slug": ""}, headers=alice)
    assert resp.status_code == 400
    assert resp.text == "Slug is required"


def test_missing_page_redirects_to_editor(client):
    resp = client.get("/wiki/nowhere")
    assert resp.status_code == 302
    assert resp.headers["location"] == "/wiki/nowhere/edit"


def test_create_then_view(client, alice):
    assert client.get("/wiki/hello").headers["location"] == "/wiki/hello/edit"
    _create_page(client, alice, "hello", "# Greetings\n\nSome *markdown* text.")

    resp = client.get("/wiki/hello")
    assert resp.status_code == 200
    assert "<h1>Greetings</h1>" in resp.text
    assert "<em>markdown</em>" in resp.text
    assert "By alice" in resp.text


def test_view_is_public(client, alice):
    _create_page(client, alice, "open", "anyone can read")
    resp = client.get("/wiki/open")
    assert resp.status_code == 200
    assert "anyone can read" in resp.text
    assert "/wiki/open/edit" not in resp.text


def test_edit_link_only_for_author(client, alice, bob):
    _create_page(client, alice, "mine", "text")
    assert 'href="/wiki/mine/edit"' in client.get("/wiki/mine", headers=alice).text
    assert 'href="/wiki/mine/edit"' not in client.get("/wiki/mine", headers=bob).text


def test_raw_html_is_escaped(client, alice):
    _create_page(client, alice, "xss", "<script>alert(1)</script>\n\nhi <b>there</b>")
    resp = client.get("/wiki/xss")
    assert "<script>alert(1)</script>" not in resp.text
    assert "&lt;script&gt;" in resp.text
    assert "<b>there</b>" not in resp.text


def test_script_links_are_not_rendered_live(client, alice):
    _create_page(client, alice, "evil", "[click](javascript:alert(document.cookie))")
    resp = client.get("/wiki/evil")
    assert resp.status_code == 200
    assert 'href="javascript:' not in resp.text
    assert "click" in resp.text


def test_editor_requires_login(client):
    for method in ("GET", "POST"):
        resp = client.request(method, "/wiki/anything/edit")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/login"


def test_author_can_edit(client, alice):
    _create_page(client, alice, "draft", "first version")

    resp = client.get("/wiki/draft/edit", headers=alice)
    assert resp.status_code == 200
    assert "first version" in resp.text

    _create_page(client, alice, "draft", "second version")
    resp = client.get("/wiki/draft")
    assert "second version" in resp.text
    assert "first version" not in resp.text


def test_editor_for_new_slug_is_empty(client, alice):
    resp = client.get("/wiki/fresh/edit", headers=alice)
    assert resp.status_code == 200
    assert "Editing fresh" in resp.text


def test_non_author_cannot_edit(client, alice, bob):
    _create_page(client, alice, "owned", "alice wrote this")

    resp = client.get("/wiki/owned/edit", headers=bob)
    assert resp.status_code == 403
    assert resp.text == "You do not have permission to edit this page."

    resp = client.post("/wiki/owned/edit", data={"content": "bob was here"}, headers=bob)
    assert resp.status_code == 403

    assert "alice wrote this" in client.get("/wiki/owned").text


def test_new_is_not_a_viewable_slug(client, alice):
    resp = client.get("/wiki/new", headers=alice)
    assert 'name="slug"' in resp.text


@pytest.mark.parametrize(
    "method, path",
    [
        ("GET", "/nope"),
        ("GET", "/wiki/"),
        ("GET", "/wiki/a/b"),
        ("GET", "/wiki/a/edit/more"),
        ("GET", "/logout"),
        ("PUT", "/wiki"),
        ("DELETE", "/wiki/page"),
    ],
)
def test_unknown_routes_are_404(client, method, path):
    resp = client.request(method, path)
    assert resp.status_code == 404
    assert resp.text == "Not found"


def test_session_survives_between_requests(client):
    headers = register(client, "dave")
    assert client.get("/wiki/new", headers=headers).status_code == 200
