from __future__ import annotations

import html

from src.playground.buffers import SourceBufferSet
from src.playground.sandbox import render_iframe
from src.session.preferences import UiPreferences

_TAB_LABELS = (("html", "HTML"), ("css", "CSS"), ("js", "JavaScript"))

# localStorage key the login flow stores the bearer token under.
TOKEN_STORAGE_KEY = "codehub.session_token"

# The host page is plain markup plus a small fetch-based controller; all state
# lives server-side, the page only relays edits and button presses and renders
# the state the API returns.
_PAGE_SCRIPT = """
const sid = document.body.dataset.session;
const tokenKey = document.body.dataset.tokenKey;
const $ = (id) => document.getElementById(id);
const editor = (name) => document.querySelector(`textarea[data-buffer="${name}"]`);
let active = document.body.dataset.active;

function headers() {
  const h = {"content-type": "application/json"};
  const token = window.localStorage.getItem(tokenKey);
  if (token) { h["authorization"] = `Bearer ${token}`; }
  return h;
}
const api = (path, opts) => fetch(`/api/playground/${sid}${path}`,
  Object.assign({}, opts || {}, {headers: headers()}));
const status = (msg) => { $("status").textContent = msg || ""; };

// Edits go out debounced; PUTs for one buffer are chained so they land in order.
const timers = new Map();
const chains = {};
function push(name, code) {
  chains[name] = (chains[name] || Promise.resolve()).catch(() => {}).then(
    () => api(`/buffers/${name}`, {method: "PUT", body: JSON.stringify({code})}));
  return chains[name];
}
function schedule(name) {
  clearTimeout(timers.get(name));
  timers.set(name, setTimeout(() => { timers.delete(name); push(name, editor(name).value); }, 300));
}
async function flush() {
  for (const [name, timer] of timers) { clearTimeout(timer); push(name, editor(name).value); }
  timers.clear();
  await Promise.allSettled(Object.values(chains));
}

function renderList(items, selected) {
  const list = $("snippets");
  list.replaceChildren();
  if (!items.length) {
    const empty = document.createElement("li");
    empty.textContent = "No saved snippets";
    list.append(empty);
    return;
  }
  items.forEach((s) => {
    const li = document.createElement("li");
    if (s.id === selected) { li.className = "selected"; }
    const label = document.createElement("span");
    label.textContent = `${s.title} (${s.language})`;
    const load = document.createElement("button");
    load.type = "button";
    load.textContent = "Load";
    load.addEventListener("click",
      () => call(`/snippets/${encodeURIComponent(s.id)}/load`, {method: "POST"}, "loaded"));
    const del = document.createElement("button");
    del.type = "button";
    del.textContent = "Delete";
    del.addEventListener("click",
      () => call(`/snippets/${encodeURIComponent(s.id)}`, {method: "DELETE"}, "deleted"));
    li.append(label, load, del);
    list.append(li);
  });
}

function apply(state) {
  active = state.buffers.active;
  document.querySelectorAll("textarea[data-buffer]").forEach((t) => {
    const name = t.dataset.buffer;
    if (!timers.has(name)) { t.value = state.buffers[name]; }
    t.hidden = name !== active;
  });
  $("title").value = state.title;
  if (state.preview_url && !$("preview").src.includes(state.preview_url)) {
    $("preview").src = state.preview_url;
  }
  renderList(state.snippets, state.selected_snippet_id);
}

async function call(path, opts, done) {
  await flush();
  const r = await api(path, opts);
  const body = await r.json();
  if (!r.ok) { status(body.error); return null; }
  apply(body);
  status(done);
  return body;
}

document.querySelectorAll("textarea[data-buffer]").forEach(
  (t) => t.addEventListener("input", () => schedule(t.dataset.buffer)));
document.querySelectorAll("button[data-tab]").forEach((b) => b.addEventListener("click", () => {
  active = b.dataset.tab;
  document.querySelectorAll("textarea[data-buffer]").forEach(
    (t) => { t.hidden = t.dataset.buffer !== active; });
  api("/active", {method: "POST", body: JSON.stringify({buffer: active})});
}));
$("run").addEventListener("click", async () => {
  await flush();
  const r = await api("/run", {method: "POST"});
  const body = await r.json();
  if (!r.ok) { status(body.error); return; }
  $("preview").src = `${body.preview_url}?r=${body.revision}`;
});
$("save").addEventListener("click", () => call(
  "/save", {method: "POST", body: JSON.stringify({title: $("title").value})}, "saved"));
$("new").addEventListener("click", () => call("/new", {method: "POST"}));
$("refresh").addEventListener("click", () => call("/snippets", {method: "GET"}));
$("copy").addEventListener("click", async () => {
  await navigator.clipboard.writeText(editor(active).value);
  status("copied");
});
$("download").addEventListener("click", async () => {
  await flush();
  const r = await api(`/export?buffer=${active}`, {method: "GET"});
  if (!r.ok) { status((await r.json()).error); return; }
  const match = /filename="([^"]+)"/.exec(r.headers.get("content-disposition") || "");
  const link = document.createElement("a");
  link.href = URL.createObjectURL(await r.blob());
  link.download = match ? match[1] : "snippet.txt";
  link.click();
  URL.revokeObjectURL(link.href);
});

call("", {method: "GET"}).then(() => call("/snippets", {method: "GET"}));
"""


def render_playground_page(
    *,
    session_id: str,
    buffers: SourceBufferSet,
    title: str,
    preview_url: str,
    prefs: UiPreferences,
) -> str:
    tabs = "".join(
        f'<button type="button" data-tab="{name}">{label}</button>'
        for name, label in _TAB_LABELS
    )
    editors = "".join(
        f'<textarea data-buffer="{name}" spellcheck="false"'
        f'{"" if name == buffers.active else " hidden"}>'
        f"{html.escape(buffers.get(name))}</textarea>"
        for name, _ in _TAB_LABELS
    )
    sid = html.escape(session_id, quote=True)
    return (
        "<!DOCTYPE html>\n"
        f'<html lang="{prefs.locale}" dir="{prefs.direction}" class="{prefs.theme}">\n'
        "<head><meta charset=\"utf-8\"><title>Code Playground</title></head>\n"
        f'<body data-session="{sid}" data-active="{buffers.active}" '
        f'data-token-key="{TOKEN_STORAGE_KEY}">\n'
        "<h1>Code Playground</h1>\n"
        f"<nav>{tabs}</nav>\n"
        f"<section>{editors}</section>\n"
        f'<input id="title" aria-label="Snippet title" value="{html.escape(title, quote=True)}">'
        '<button type="button" id="save">Save</button>'
        '<button type="button" id="run">Run</button>'
        '<button type="button" id="copy">Copy</button>'
        '<button type="button" id="download">Download</button>'
        '<span id="status" role="status"></span>\n'
        f"{render_iframe(preview_url)}\n"
        "<aside><h2>Saved Snippets</h2>"
        '<button type="button" id="refresh">Refresh</button>'
        '<button type="button" id="new">New Snippet</button>'
        '<ul id="snippets"></ul></aside>\n'
        f"<script>{_PAGE_SCRIPT}</script>\n"
        "</body>\n</html>\n"
    )
