"""
Server-rendered HTML pages
"""

from .validation import escape_html

BASE_STYLE = """
        * {
            margin: 0;
            padding: 0;
            box-sizing: border-box;
        }

        body {
            font-family: -apple-system, BlinkMacSystemFont, "Helvetica Neue", Arial, sans-serif;
            background: linear-gradient(135deg, #1a1a2e 0%, #16213e 50%, #0f3460 100%);
            min-height: 100vh;
            display: flex;
            align-items: center;
            justify-content: center;
            padding: 20px;
            color: #ffffff;
        }

        .container {
            background: rgba(30, 30, 30, 0.7);
            border: 1px solid rgba(255, 255, 255, 0.12);
            border-radius: 24px;
            padding: 36px 28px;
            width: 100%;
            max-width: 520px;
        }

        h1 {
            text-align: center;
            font-size: 28px;
            font-weight: 600;
            margin-bottom: 6px;
        }

        .subtitle {
            text-align: center;
            color: rgba(255, 255, 255, 0.6);
            margin-bottom: 28px;
            font-size: 14px;
        }

        .section {
            margin-bottom: 22px;
        }

        label {
            display: block;
            margin-bottom: 10px;
            font-weight: 500;
            font-size: 14px;
        }

        textarea, input[type="text"], input[type="password"], select {
            width: 100%;
            padding: 14px 16px;
            background: rgba(255, 255, 255, 0.08);
            border: 1px solid rgba(255, 255, 255, 0.12);
            border-radius: 14px;
            font-size: 15px;
            font-family: inherit;
            color: #ffffff;
        }

        textarea {
            min-height: 140px;
            resize: vertical;
        }

        button {
            width: 100%;
            padding: 14px;
            border: none;
            border-radius: 14px;
            font-size: 16px;
            font-weight: 600;
            color: #ffffff;
            background: #007AFF;
            cursor: pointer;
            margin-top: 8px;
        }

        button.danger {
            background: #FF3B30;
        }

        .result {
            display: none;
            margin-top: 20px;
            padding: 16px;
            border-radius: 14px;
            background: rgba(52, 199, 89, 0.15);
            border: 1px solid rgba(52, 199, 89, 0.4);
            word-break: break-all;
        }

        .result.show {
            display: block;
        }

        .result.error {
            background: rgba(255, 59, 48, 0.15);
            border-color: rgba(255, 59, 48, 0.4);
        }

        pre {
            white-space: pre-wrap;
            word-break: break-word;
            margin-top: 10px;
            font-family: "SF Mono", Menlo, monospace;
            font-size: 13px;
        }

        .meta {
            font-size: 12px;
            color: rgba(255, 255, 255, 0.6);
            margin-top: 8px;
        }
"""

# Shared client helpers; every value from the server goes through textContent
CLIENT_SCRIPT = """
        async function postJson(path, body) {
            const response = await fetch(path, {
                method: 'POST',
                headers: {'Content-Type': 'application/json'},
                body: JSON.stringify(body)
            });
            let data = {};
            try {
                data = await response.json();
            } catch (e) {
                data = {success: false, message: 'Server error'};
            }
            return data;
        }

        function showResult(id, lines, isError) {
            const box = document.getElementById(id);
            box.replaceChildren();
            for (const line of lines) {
                const el = document.createElement(line.pre ? 'pre' : 'div');
                if (line.meta) el.className = 'meta';
                el.textContent = line.text;
                box.appendChild(el);
            }
            box.className = 'result show' + (isError ? ' error' : '');
        }
"""


def _page(site_name: str, title: str, body: str, script: str) -> str:
    name = escape_html(site_name)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{name} - {escape_html(title)}</title>
    <style>{BASE_STYLE}
    </style>
</head>
<body>
    <div class="container">
        <h1>{name}</h1>
{body}
    </div>
    <script>{CLIENT_SCRIPT}
{script}
    </script>
</body>
</html>
"""


def get_share_page(site_name: str = "TempShare") -> str:
    """Upload and view page for anonymous pastes"""
    body = """
        <div class="subtitle">Temporary content sharing - expires automatically</div>
        <div class="section">
            <label for="content">Content</label>
            <textarea id="content" maxlength="10240" placeholder="Paste text here..."></textarea>
        </div>
        <div class="section">
            <label for="expiry">Expires after</label>
            <select id="expiry">
                <option value="1">1 hour</option>
                <option value="6">6 hours</option>
                <option value="24" selected>24 hours</option>
                <option value="168">7 days</option>
            </select>
            <button onclick="upload()">Share</button>
            <div class="result" id="uploadResult"></div>
        </div>
        <div class="section">
            <label for="password">Password</label>
            <input type="text" id="password" maxlength="16" placeholder="16-character password">
            <button onclick="view()">View</button>
            <div class="result" id="viewResult"></div>
        </div>"""
    script = """
        async function upload() {
            const content = document.getElementById('content').value;
            const expiryHours = parseInt(document.getElementById('expiry').value, 10);
            if (!content) {
                showResult('uploadResult', [{text: 'Content is required'}], true);
                return;
            }
            const data = await postJson('/api/upload', {content, expiryHours});
            if (!data.success) {
                showResult('uploadResult', [{text: data.message}], true);
                return;
            }
            showResult('uploadResult', [
                {text: 'Password: ' + data.password},
                {text: 'Expires at ' + new Date(data.expiresAt).toLocaleString(), meta: true}
            ], false);
        }

        async function view() {
            const password = document.getElementById('password').value.trim();
            const data = await postJson('/api/view', {password});
            if (!data.success) {
                showResult('viewResult', [{text: data.message}], true);
                return;
            }
            showResult('viewResult', [
                {text: data.content, pre: true},
                {text: 'Views: ' + data.views + ' - expires ' + new Date(data.expiresAt).toLocaleString(), meta: true}
            ], false);
        }"""
    return _page(site_name, "Share", body, script)


def get_login_page(site_name: str = "TempShare Vault") -> str:
    """Password entry page for vault records"""
    body = """
        <div class="subtitle">Enter your access password</div>
        <div class="section">
            <input type="password" id="password" placeholder="Password">
            <button onclick="verify()">Unlock</button>
            <div class="result" id="verifyResult"></div>
        </div>"""
    script = """
        async function verify() {
            const password = document.getElementById('password').value;
            const data = await postJson('/api/verify', {password});
            if (!data.success) {
                showResult('verifyResult', [{text: data.message}], true);
                return;
            }
            const lines = [{text: data.data.title}];
            for (const item of data.data.items) {
                lines.push({text: item.label, meta: true});
                lines.push({text: item.content, pre: true});
            }
            showResult('verifyResult', lines, false);
        }

        document.getElementById('password').addEventListener('keydown', (e) => {
            if (e.key === 'Enter') {
                verify();
            }
        });"""
    return _page(site_name, "Unlock", body, script)


def get_admin_page(site_name: str = "TempShare Vault") -> str:
    """Admin page: add, list and delete vault records"""
    body = """
        <div class="subtitle">Administration</div>
        <div class="section">
            <label for="adminPassword">Admin password</label>
            <input type="password" id="adminPassword">
            <button onclick="listRecords()">Load records</button>
            <div class="result" id="listResult"></div>
        </div>
        <div class="section">
            <label for="newPassword">Access password</label>
            <input type="text" id="newPassword">
            <label for="title">Title</label>
            <input type="text" id="title">
            <label for="items">Items (one "label: content" per line)</label>
            <textarea id="items"></textarea>
            <button onclick="addRecord()">Add</button>
            <div class="result" id="addResult"></div>
        </div>
        <div class="section">
            <label for="hash">Record hash</label>
            <input type="text" id="hash" maxlength="64">
            <button class="danger" onclick="deleteRecord()">Delete</button>
            <div class="result" id="deleteResult"></div>
        </div>"""
    script = """
        function adminPassword() {
            return document.getElementById('adminPassword').value;
        }

        async function listRecords() {
            const data = await postJson('/api/admin/list', {adminPassword: adminPassword()});
            if (!data.success) {
                showResult('listResult', [{text: data.message}], true);
                return;
            }
            const lines = [{text: data.items.length + ' records'}];
            for (const item of data.items) {
                lines.push({text: item.title + ' (' + item.itemCount + ' items)'});
                lines.push({text: item.hash, meta: true});
            }
            showResult('listResult', lines, false);
        }

        async function addRecord() {
            const items = document.getElementById('items').value
                .split('\\n')
                .filter(line => line.trim())
                .map(line => {
                    const idx = line.indexOf(':');
                    if (idx < 0) return {label: line.trim(), content: ''};
                    return {label: line.slice(0, idx).trim(), content: line.slice(idx + 1).trim()};
                });
            const data = await postJson('/api/admin/add', {
                adminPassword: adminPassword(),
                password: document.getElementById('newPassword').value,
                title: document.getElementById('title').value,
                items
            });
            showResult('addResult', [{text: data.success ? 'Added' : data.message}], !data.success);
        }

        async function deleteRecord() {
            const data = await postJson('/api/admin/delete', {
                adminPassword: adminPassword(),
                hash: document.getElementById('hash').value.trim()
            });
            showResult('deleteResult', [{text: data.success ? 'Deleted' : data.message}], !data.success);
        }"""
    return _page(site_name, "Admin", body, script)
