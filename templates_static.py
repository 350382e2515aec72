"""Templates and static file generation."""

from pathlib import Path
from typing import Optional

# Template content
BASE_HTML = """<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{{ title or 'Photo Frame' }}</title>
  <link rel="stylesheet" href="/static/app.css">
</head>
<body class="{% block body_class %}{% endblock %}">
  {% block header %}
  <header class="topbar">
    <nav>
      <a href="/slideshow" class="brand">🖼️ Photo Frame</a>
      <a href="/folder-selection">Folders</a>
      <a href="/admin">Admin</a>
      <a href="/access-accounts">Access Accounts</a>
      <form class="inline right" method="post" action="/api/auth/logout"><button>Log out</button></form>
    </nav>
  </header>
  {% endblock %}
  <main class="container">
    {% block content %}{% endblock %}
  </main>
  <script>
    async function api(url, options = {}) {
      const res = await fetch(url, options);
      let body = null;
      try { body = await res.json(); } catch (e) { body = {}; }
      if (res.status === 401 && body.redirect) { window.location = body.redirect; }
      return { ok: res.ok, status: res.status, body };
    }
    function jsonOptions(method, payload) {
      return { method, headers: { 'Content-Type': 'application/json' }, body: JSON.stringify(payload) };
    }
  </script>
  {% block scripts %}{% endblock %}
</body>
</html>
"""

SLIDESHOW_HTML = """{% extends 'base.html' %}
{% block body_class %}slideshow{% endblock %}
{% block header %}{% endblock %}
{% block content %}
<div class="stage">
  <img id="slide" alt="" />
  <div id="slideMessage" class="slide-message"></div>
</div>
<div class="overlay" id="overlay">
  {% if account %}
  <span class="muted">Signed in as {{ account.name }}</span>
  <button type="button" id="pinLogout">Exit</button>
  {% else %}
  <form id="pinForm" class="pin-form">
    <input name="pin" inputmode="numeric" pattern="[0-9]*" maxlength="6" placeholder="PIN" autocomplete="off" />
    <button>Enter</button>
  </form>
  {% endif %}
  <a href="/folder-selection">Folders</a>
  <span id="pinMessage" class="muted"></span>
  <img id="qr" class="qr" alt="Scan to upload" />
</div>
{% endblock %}
{% block scripts %}
<script>
class Slideshow {
  constructor() {
    this.interval = {{ interval | int }};
    this.folder = {{ folder | tojson }};
    this.img = document.getElementById('slide');
    this.message = document.getElementById('slideMessage');
  }
  async next() {
    const qs = this.folder ? '?folder=' + encodeURIComponent(this.folder) : '';
    const { ok, body } = await api('/api/images/random' + qs);
    if (!ok) { this.message.textContent = body.error || 'Nothing to show'; this.img.removeAttribute('src'); return; }
    this.message.textContent = '';
    this.img.src = body.image.path;
  }
  start() { this.next(); setInterval(() => this.next(), this.interval); }
}
new Slideshow().start();

const pinForm = document.getElementById('pinForm');
const pinMessage = document.getElementById('pinMessage');
if (pinForm) {
  pinForm.addEventListener('submit', async (e) => {
    e.preventDefault();
    const pin = pinForm.pin.value.trim();
    const { ok, body } = await api('/api/auth/pin', jsonOptions('POST', { pin }));
    if (ok) { window.location.reload(); return; }
    if (body.code === 'RATE_LIMITED') { pinMessage.textContent = body.error; }
    else if (body.code === 'INVALID_PIN') { pinMessage.textContent = 'Invalid PIN, ' + body.attemptsRemaining + ' attempts left'; }
    else { pinMessage.textContent = body.error || 'Login failed'; }
  });
}
const pinLogout = document.getElementById('pinLogout');
if (pinLogout) {
  pinLogout.addEventListener('click', async () => { await api('/api/auth/session', { method: 'DELETE' }); window.location.reload(); });
}
fetch('/api/qr-code').then(r => r.text()).then(url => { document.getElementById('qr').src = url; });
</script>
{% endblock %}
"""

FOLDER_SELECTION_HTML = """{% extends 'base.html' %}
{% block header %}{% endblock %}
{% block content %}
<h1>Choose a folder</h1>
<nav id="crumbs" class="crumbs"></nav>
<p><a id="playHere" class="button-link" href="/slideshow">▶ Play this folder</a></p>
<div id="folders" class="grid"></div>
{% endblock %}
{% block scripts %}
<script>
async function show(path) {
  const url = '/api/folders' + (path ? '/' + path.split('/').map(encodeURIComponent).join('/') : '');
  const { ok, body } = await api(url);
  const grid = document.getElementById('folders');
  grid.innerHTML = '';
  if (!ok) { grid.textContent = body.error || 'Folder not found'; return; }
  const crumbs = document.getElementById('crumbs');
  crumbs.innerHTML = '';
  body.folder.breadcrumb.forEach(c => {
    const a = document.createElement('a');
    a.href = '#'; a.textContent = c.name;
    a.onclick = (e) => { e.preventDefault(); show(c.path); };
    crumbs.appendChild(a);
  });
  document.getElementById('playHere').href = '/slideshow' + (path ? '?folder=' + encodeURIComponent(path) : '');
  body.subfolders.forEach(f => {
    const card = document.createElement('div');
    card.className = 'card';
    card.innerHTML = '<img loading="lazy" alt=""><div class="meta"><strong></strong><span class="muted"></span></div>';
    card.querySelector('img').src = f.thumbnail;
    card.querySelector('strong').textContent = f.name;
    card.querySelector('.muted').textContent = f.imageCount + ' photos';
    card.onclick = () => show(f.path);
    grid.appendChild(card);
  });
}
show('');
</script>
{% endblock %}
"""

LOGIN_HTML = """{% extends 'base.html' %}
{% block header %}{% endblock %}
{% block content %}
<div class="narrow">
  <h1>Admin login</h1>
  {% if error %}<div class="flash error">Invalid password</div>{% endif %}
  {% if expired %}<div class="flash">Your session expired, please log in again.</div>{% endif %}
  <form method="post" action="/api/auth/login" class="settings">
    <input type="password" name="password" placeholder="Password" autofocus />
    <button>Log in</button>
  </form>
  <p><a href="/slideshow">Back to slideshow</a></p>
</div>
{% endblock %}
"""

ADMIN_HTML = """{% extends 'base.html' %}
{% block content %}
<h1>Photos</h1>
<section class="panel">
  <form id="uploadForm" class="row">
    <input type="file" name="images" accept="image/*" multiple />
    <input type="hidden" name="folder" id="uploadFolder" />
    <button>Upload here</button>
    <span id="uploadStatus" class="muted"></span>
  </form>
  <form id="folderForm" class="row">
    <input name="name" placeholder="New folder name" />
    <button>Create folder</button>
  </form>
</section>
<nav class="crumbs"><strong id="currentPath">/</strong> <a href="#" id="upLink">⬆ Up</a>
  <button type="button" class="danger" id="deleteFolder">Delete folder</button>
  <button type="button" class="danger" id="deleteSelected">Delete selected</button>
</nav>
<div id="listing" class="grid"></div>
<section class="panel">
  <h2>Guest upload QR code</h2>
  <img id="qr" class="qr large" alt="QR code" />
  <p class="muted">Guest uploads go to <code>{{ upload_folder }}</code>.</p>
</section>
{% endblock %}
{% block scripts %}
<script>
let current = '';
async function load(path) {
  current = path;
  document.getElementById('currentPath').textContent = '/' + path;
  document.getElementById('uploadFolder').value = path;
  const { ok, body } = await api('/api/admin/folders?path=' + encodeURIComponent(path));
  const grid = document.getElementById('listing');
  grid.innerHTML = '';
  if (!ok) { grid.textContent = body.error || 'Could not load folder'; return; }
  body.folders.forEach(f => {
    const card = document.createElement('div');
    card.className = 'card folder';
    card.textContent = '📁 ' + f.name;
    card.onclick = () => load(f.path);
    grid.appendChild(card);
  });
  body.files.forEach(f => {
    const card = document.createElement('div');
    card.className = 'card';
    card.innerHTML = '<img loading="lazy" alt=""><div class="meta"><label><input type="checkbox" class="pick"> <span></span></label>' +
      '<div class="row"><button class="rl">⟲</button><button class="rr">⟳</button><button class="danger del">Delete</button></div></div>';
    card.querySelector('img').src = '/api/images/' + encodeURIComponent(f.path) + '/thumbnail?t=' + Date.now();
    card.querySelector('span').textContent = f.name;
    card.querySelector('.pick').value = f.path;
    card.querySelector('.rl').onclick = () => rotate(f.path, -90);
    card.querySelector('.rr').onclick = () => rotate(f.path, 90);
    card.querySelector('.del').onclick = () => removeImage(f.path);
    grid.appendChild(card);
  });
}
async function rotate(path, angle) { await api('/api/images/rotate', jsonOptions('POST', { path, angle })); load(current); }
async function removeImage(path) {
  if (!confirm('Delete ' + path + '?')) return;
  await api('/api/images?path=' + encodeURIComponent(path), { method: 'DELETE' });
  load(current);
}
document.getElementById('deleteSelected').onclick = async () => {
  const paths = [...document.querySelectorAll('.pick:checked')].map(c => c.value);
  if (!paths.length || !confirm('Delete ' + paths.length + ' images?')) return;
  await api('/api/images/batch', jsonOptions('DELETE', { paths }));
  load(current);
};
document.getElementById('deleteFolder').onclick = async () => {
  if (!current || !confirm('Delete folder ' + current + ' and everything in it?')) return;
  await api('/api/admin/folders?path=' + encodeURIComponent(current), { method: 'DELETE' });
  load(current.includes('/') ? current.slice(0, current.lastIndexOf('/')) : '');
};
document.getElementById('upLink').onclick = (e) => {
  e.preventDefault();
  load(current.includes('/') ? current.slice(0, current.lastIndexOf('/')) : '');
};
document.getElementById('folderForm').onsubmit = async (e) => {
  e.preventDefault();
  const { ok, body } = await api('/api/admin/folders', jsonOptions('POST', { name: e.target.name.value, path: current }));
  if (!ok) alert(body.error); else { e.target.reset(); load(current); }
};
document.getElementById('uploadForm').onsubmit = async (e) => {
  e.preventDefault();
  const status = document.getElementById('uploadStatus');
  status.textContent = 'Uploading…';
  const { ok, body } = await api('/api/upload', { method: 'POST', body: new FormData(e.target) });
  status.textContent = ok ? body.files.length + ' uploaded' : (body.error || 'Upload failed');
  e.target.reset();
  load(current);
};
fetch('/api/qr-code').then(r => r.text()).then(url => { document.getElementById('qr').src = url; });
load('');
</script>
{% endblock %}
"""

ACCESS_ACCOUNTS_HTML = """{% extends 'base.html' %}
{% block content %}
<h1>Access Accounts</h1>
<div class="twocol">
  <form id="accountForm" class="settings panel">
    <h2 id="formTitle">New account</h2>
    <input type="hidden" name="id" />
    <input name="name" placeholder="Name" required />
    <input name="pin" placeholder="PIN (4-6 digits)" pattern="[0-9]{4,6}" required />
    <fieldset id="folderChoices"><legend>Folders</legend></fieldset>
    <div class="row"><button>Save</button><button type="button" id="resetForm">Clear</button></div>
    <div id="formMessage" class="muted"></div>
  </form>
  <table class="tbl">
    <thead><tr><th>Name</th><th>PIN</th><th>Folders</th><th>Last access</th><th></th></tr></thead>
    <tbody id="accounts"></tbody>
  </table>
</div>
{% endblock %}
{% block scripts %}
<script>
const form = document.getElementById('accountForm');
async function loadFolders() {
  const { body } = await api('/api/folders');
  const box = document.getElementById('folderChoices');
  (body.subfolders || []).forEach(f => {
    const label = document.createElement('label');
    label.innerHTML = '<input type="checkbox" name="folders"> <span></span>';
    label.querySelector('input').value = f.path;
    label.querySelector('span').textContent = f.name;
    box.appendChild(label);
  });
}
async function loadAccounts() {
  const { body } = await api('/api/access-accounts');
  const tbody = document.getElementById('accounts');
  tbody.innerHTML = '';
  (body.accounts || []).forEach(a => {
    const tr = document.createElement('tr');
    tr.innerHTML = '<td></td><td></td><td></td><td></td><td><button class="edit">Edit</button> <button class="danger del">Delete</button></td>';
    const cells = tr.querySelectorAll('td');
    cells[0].textContent = a.name;
    cells[1].textContent = a.pin;
    cells[2].textContent = a.assignedFolders.join(', ') || 'all';
    cells[3].textContent = a.lastAccessed || 'never';
    tr.querySelector('.edit').onclick = () => edit(a);
    tr.querySelector('.del').onclick = async () => {
      if (!confirm('Delete ' + a.name + '?')) return;
      await api('/api/access-accounts/' + encodeURIComponent(a.id), { method: 'DELETE' });
      loadAccounts();
    };
    tbody.appendChild(tr);
  });
}
function edit(a) {
  document.getElementById('formTitle').textContent = 'Edit ' + a.name;
  form.id.value = a.id; form.name.value = a.name; form.pin.value = a.pin;
  form.querySelectorAll('input[name=folders]').forEach(c => { c.checked = a.assignedFolders.includes(c.value); });
}
function clearForm() { form.reset(); form.id.value = ''; document.getElementById('formTitle').textContent = 'New account'; }
document.getElementById('resetForm').onclick = clearForm;
form.onsubmit = async (e) => {
  e.preventDefault();
  const payload = {
    name: form.name.value,
    pin: form.pin.value,
    assignedFolders: [...form.querySelectorAll('input[name=folders]:checked')].map(c => c.value),
  };
  const id = form.id.value;
  const { ok, body } = id
    ? await api('/api/access-accounts/' + encodeURIComponent(id), jsonOptions('PUT', payload))
    : await api('/api/access-accounts', jsonOptions('POST', payload));
  document.getElementById('formMessage').textContent = ok ? 'Saved' : body.error;
  if (ok) { clearForm(); loadAccounts(); }
};
loadFolders();
loadAccounts();
</script>
{% endblock %}
"""

UPLOAD_HTML = """{% extends 'base.html' %}
{% block header %}{% endblock %}
{% block content %}
<div class="narrow">
  <h1>Share your photos</h1>
  <form id="uploadForm" class="settings">
    <input type="file" name="images" accept="image/*" multiple required />
    <button>Upload</button>
  </form>
  <div id="status" class="muted"></div>
  <p><a href="/slideshow">Watch the slideshow</a></p>
</div>
{% endblock %}
{% block scripts %}
<script>
document.getElementById('uploadForm').onsubmit = async (e) => {
  e.preventDefault();
  const status = document.getElementById('status');
  status.textContent = 'Uploading…';
  const { ok, body } = await api('/api/upload', { method: 'POST', body: new FormData(e.target) });
  status.textContent = ok ? 'Thanks! ' + body.files.length + ' photo(s) uploaded.' : (body.error || body.detail || 'Upload failed');
  if (ok) e.target.reset();
};
</script>
{% endblock %}
"""

APP_CSS = """:root{--bg:#0f1115;--fg:#e5e7eb;--muted:#a1a1aa;--card:#111318;--brand:#7aa2ff;--danger:#ff5c5c}
*{box-sizing:border-box}body{margin:0;background:var(--bg);color:var(--fg);font:15px/1.45 system-ui,-apple-system,Segoe UI,Roboto,Inter,Ubuntu,Helvetica,Arial}
a{color:var(--brand);text-decoration:none}.muted{color:var(--muted)}
.topbar{position:sticky;top:0;background:#0c0e13;border-bottom:1px solid #1c1f26;z-index:10}
.topbar nav{margin:auto;display:flex;gap:14px;align-items:center;padding:10px}
.topbar .brand{font-weight:700}.right{margin-left:auto}
.container{margin:20px auto;padding:0 14px}
.narrow{max-width:420px;margin:60px auto}
.grid{display:grid;grid-template-columns:repeat(auto-fill,minmax(200px,1fr));gap:14px}
.card{background:var(--card);border:1px solid #1f2430;border-radius:12px;overflow:hidden;display:flex;flex-direction:column;cursor:pointer}
.card.folder{padding:18px;font-weight:600}
.card img{width:100%;height:180px;object-fit:cover;display:block;background:#090a0d}
.card .meta{padding:10px;display:flex;flex-direction:column;gap:8px}
.row{display:flex;gap:8px;align-items:center;flex-wrap:wrap}
.panel{background:var(--card);border:1px solid #1f2430;border-radius:8px;padding:16px;margin:16px 0}
.crumbs{display:flex;gap:10px;align-items:center;margin:12px 0}
.inline{display:inline}
.tbl{width:100%;border-collapse:collapse}.tbl th,.tbl td{border-bottom:1px solid #252a36;padding:8px;text-align:left}
.twocol{display:grid;grid-template-columns:320px 1fr;gap:20px}
button{cursor:pointer;background:#1e2635;border:1px solid #2f3748;color:var(--fg);padding:6px 12px;border-radius:8px}
button.danger{background:#3a1313;border-color:#5b1a1a;color:#ffd5d5}
input{background:#0e1218;border:1px solid #232a39;color:var(--fg);padding:6px 10px;border-radius:8px}
.settings{display:grid;gap:10px}
fieldset{border:1px solid #232a39;border-radius:8px;display:flex;flex-direction:column;gap:4px}
.flash{background:#13221d;border:1px solid #214d39;padding:10px;border-radius:10px;margin-bottom:10px}
.flash.error{background:#2d1b1b;border-color:#ef4444;color:#f87171}
.button-link{display:inline-block;background:#374151;color:white;padding:6px 12px;border-radius:6px}
body.slideshow{background:#000;overflow:hidden}
body.slideshow .container{margin:0;padding:0}
.stage{position:fixed;inset:0;display:flex;align-items:center;justify-content:center}
.stage img{max-width:100vw;max-height:100vh;object-fit:contain}
.slide-message{position:absolute;color:var(--muted);font-size:22px}
.overlay{position:fixed;left:12px;bottom:12px;display:flex;gap:10px;align-items:center;opacity:.25;transition:opacity .3s}
.overlay:hover{opacity:1}
.pin-form{display:flex;gap:6px}.pin-form input{width:90px}
.qr{width:72px;height:72px;background:#fff;border-radius:6px}.qr.large{width:220px;height:220px}
"""


def ensure_assets(templates_dir: Optional[Path] = None, static_dir: Optional[Path] = None) -> None:
    """Create templates/static on first run so the app is standalone."""
    app_dir = Path(__file__).resolve().parent
    templates_dir = templates_dir or app_dir / "templates"
    static_dir = static_dir or app_dir / "static"

    templates_dir.mkdir(parents=True, exist_ok=True)
    static_dir.mkdir(parents=True, exist_ok=True)
    files = {
        templates_dir / "base.html": BASE_HTML,
        templates_dir / "slideshow.html": SLIDESHOW_HTML,
        templates_dir / "folder_selection.html": FOLDER_SELECTION_HTML,
        templates_dir / "login.html": LOGIN_HTML,
        templates_dir / "admin.html": ADMIN_HTML,
        templates_dir / "access_accounts.html": ACCESS_ACCOUNTS_HTML,
        templates_dir / "upload.html": UPLOAD_HTML,
        static_dir / "app.css": APP_CSS,
    }
    for p, content in files.items():
        if not p.exists():
            p.write_text(content, encoding="utf-8")
