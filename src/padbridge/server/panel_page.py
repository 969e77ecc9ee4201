from __future__ import annotations

# ruff: noqa: E501
import html
import json


def render_panel_html(console_host: str, console_port: int) -> str:
    """
    Controller bridge panel (single page app).

    Kept in a separate module so `app.py` stays focused on transport logic.
    Live state arrives over /ws (fullState, then incremental pushes);
    actions go through the /api endpoints.
    """
    host_attr = html.escape(console_host, quote=True)
    return f"""
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width,initial-scale=1,user-scalable=no" />
    <title>RemotePad Bridge</title>
    <style>
      * {{ box-sizing: border-box; margin: 0; padding: 0; }}
      body {{ font-family: ui-sans-serif, system-ui, -apple-system; background: #0a0a0a; color: #e0e0e0; min-height: 100vh; padding: 16px; }}
      h1 {{ font-size: 20px; font-weight: 600; margin-bottom: 4px; }}
      .subtitle {{ color: rgba(255,255,255,0.4); font-size: 12px; margin-bottom: 20px; }}
      .section {{ margin-bottom: 24px; }}
      .section-title {{ font-size: 13px; font-weight: 600; color: rgba(255,255,255,0.5); text-transform: uppercase; letter-spacing: 0.5px; margin-bottom: 10px; }}
      .bar {{ display: flex; gap: 8px; align-items: center; flex-wrap: wrap; }}
      .bar input {{ flex: 1; min-width: 140px; height: 40px; padding: 0 12px; background: rgba(255,255,255,0.06); border: 1px solid rgba(255,255,255,0.12); border-radius: 8px; color: #fff; font-size: 14px; }}
      .bar button {{ height: 40px; padding: 0 20px; border: none; border-radius: 8px; font-size: 14px; font-weight: 600; cursor: pointer; color: #fff; background: #007bff; }}
      .bar button.off {{ background: #dc3545; }}
      .status {{ display: flex; align-items: center; gap: 6px; font-size: 13px; color: rgba(255,255,255,0.5); margin-top: 8px; }}
      .dot {{ width: 8px; height: 8px; border-radius: 50%; background: #555; }}
      .dot.on {{ background: #28a745; box-shadow: 0 0 6px rgba(40,167,69,0.5); }}
      .card {{ display: flex; align-items: center; gap: 12px; padding: 12px 14px; background: rgba(255,255,255,0.04); border: 1px solid rgba(255,255,255,0.08); border-radius: 10px; margin-bottom: 8px; }}
      .card .icon {{ font-size: 24px; }}
      .card .info {{ flex: 1; min-width: 0; }}
      .card .name {{ font-size: 14px; font-weight: 500; white-space: nowrap; overflow: hidden; text-overflow: ellipsis; }}
      .card .meta {{ font-size: 11px; color: rgba(255,255,255,0.35); margin-top: 2px; }}
      select {{ height: 32px; padding: 0 8px; background: rgba(255,255,255,0.08); border: 1px solid rgba(255,255,255,0.15); border-radius: 6px; color: #fff; }}
      .pads {{ display: grid; grid-template-columns: 1fr 1fr; gap: 10px; }}
      @media (max-width: 600px) {{ .pads {{ grid-template-columns: 1fr; }} }}
      .pad {{ padding: 14px; border-radius: 12px; background: rgba(255,255,255,0.03); border: 1px solid rgba(255,255,255,0.08); }}
      .pad.active {{ border-color: rgba(0,123,255,0.4); background: rgba(0,123,255,0.05); }}
      .pad-head {{ display: flex; justify-content: space-between; align-items: center; margin-bottom: 10px; font-weight: 600; }}
      .pad-empty {{ text-align: center; padding: 20px 0; color: rgba(255,255,255,0.15); font-size: 13px; }}
      .pad-dev {{ font-size: 12px; color: rgba(255,255,255,0.4); }}
      .unassign {{ background: none; border: 1px solid rgba(255,255,255,0.15); color: rgba(255,255,255,0.4); padding: 2px 8px; border-radius: 4px; cursor: pointer; }}
      .viz {{ display: flex; gap: 12px; align-items: center; justify-content: center; margin-top: 8px; }}
      .stick {{ width: 48px; height: 48px; border-radius: 50%; position: relative; background: rgba(255,255,255,0.06); border: 1px solid rgba(255,255,255,0.1); }}
      .stick i {{ width: 12px; height: 12px; border-radius: 50%; background: #4da3ff; position: absolute; transform: translate(-50%, -50%); }}
      .trig {{ width: 8px; height: 32px; border-radius: 4px; position: relative; background: rgba(255,255,255,0.06); overflow: hidden; }}
      .trig i {{ position: absolute; bottom: 0; left: 0; right: 0; background: #ffc107; }}
      .btns {{ font-size: 12px; color: rgba(255,255,255,0.6); min-width: 60px; text-align: center; }}
      .footer {{ text-align: center; color: rgba(255,255,255,0.15); font-size: 11px; margin-top: 20px; }}
    </style>
  </head>
  <body>
    <h1>🎮 RemotePad Bridge</h1>
    <p class="subtitle">Forward local controllers → PS4</p>

    <div class="section">
      <div class="section-title">PS4 Connection</div>
      <div class="bar">
        <input type="text" id="host" placeholder="PS4 IP or hostname" value="{host_attr}" />
        <input type="number" id="port" value="{int(console_port)}" style="width:90px;flex:none" />
        <button id="btnConnect">Connect</button>
      </div>
      <div class="status"><span class="dot" id="dot"></span><span id="statusText">Not connected</span></div>
    </div>

    <div class="section">
      <div class="section-title">PS4 Controller Slots</div>
      <div class="pads" id="pads"></div>
    </div>

    <div class="section">
      <div class="section-title">Detected Controllers</div>
      <div id="controllers"></div>
    </div>

    <div class="footer">Messages sent: <span id="msgCount">0</span></div>

    <script>
      const DEFAULT_PORT = {json.dumps(int(console_port))};
      const BUTTON_NAMES = {{16384:'✕',8192:'○',32768:'□',4096:'△',1024:'L1',2048:'R1',256:'L2',512:'R2',2:'L3',4:'R3',16:'↑',32:'→',64:'↓',128:'←',8:'OPT',1:'SHR',1048576:'TP'}};
      let st = {{ ps4: {{}}, controllers: [], pads: [{{}},{{}},{{}},{{}}], msgCount: 0 }};

      function esc(s) {{
        return String(s).replace(/[&<>"']/g, c => ({{'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;',"'":'&#39;'}})[c]);
      }}

      function post(path, body) {{
        return fetch(path, {{ method: 'POST', headers: {{'Content-Type': 'application/json'}}, body: JSON.stringify(body || {{}}) }})
          .then(r => r.json()).then(res => {{ if (!res.ok) alert(res.error || 'Request failed'); }});
      }}

      function renderStatus() {{
        const btn = document.getElementById('btnConnect');
        const on = !!st.ps4.connected;
        document.getElementById('dot').className = 'dot' + (on ? ' on' : '');
        document.getElementById('statusText').textContent = on
          ? 'Connected to ' + st.ps4.host + ':' + st.ps4.port + (st.ps4.version ? ' v' + st.ps4.version : '')
          : 'Not connected';
        btn.textContent = on ? 'Disconnect' : 'Connect';
        btn.className = on ? 'off' : '';
        btn.onclick = on ? () => post('/api/disconnect') : () => {{
          const host = document.getElementById('host').value.trim();
          const port = parseInt(document.getElementById('port').value) || DEFAULT_PORT;
          if (host) post('/api/connect', {{ host, port }});
        }};
      }}

      function renderPads() {{
        document.getElementById('pads').innerHTML = st.pads.map((p, i) => {{
          const d = p.device;
          return '<div class="pad' + (d && p.active ? ' active' : '') + '">' +
            '<div class="pad-head"><span>P' + (i + 1) + ' ' + (d ? d.icon + ' ' + esc(d.label) : 'Empty') + '</span>' +
            (d ? '<button class="unassign" onclick="post(\\'/api/unassign\\', {{padIndex: ' + i + '}})">✕</button>' : '') + '</div>' +
            (d ? '<div class="pad-dev">' + esc(d.name) + ' · ' + esc(d.inputType) +
                 (d.battery ? ' · 🔋' + d.battery.level + '%' : '') + '</div><div class="viz" id="viz' + i + '"></div>'
               : '<div class="pad-empty">Assign a controller below</div>') +
            '</div>';
        }}).join('');
        renderViz();
      }}

      function renderViz() {{
        st.pads.forEach((p, i) => {{
          const el = document.getElementById('viz' + i);
          if (!el) return;
          if (!p.active || !p.state) {{ el.innerHTML = ''; return; }}
          const s = p.state, pct = v => (v / 255 * 100).toFixed(0) + '%';
          const pressed = Object.entries(BUTTON_NAMES).filter(([bit]) => s.buttons & Number(bit)).map(([, n]) => n);
          el.innerHTML =
            '<div class="stick"><i style="left:' + pct(s.lx) + ';top:' + pct(s.ly) + '"></i></div>' +
            '<div class="trig"><i style="height:' + pct(s.l2) + '"></i></div>' +
            '<div class="btns">' + (pressed.length ? pressed.join(' ') : '·') + '</div>' +
            '<div class="trig"><i style="height:' + pct(s.r2) + '"></i></div>' +
            '<div class="stick"><i style="left:' + pct(s.rx) + ';top:' + pct(s.ry) + '"></i></div>';
        }});
      }}

      function renderControllers() {{
        const el = document.getElementById('controllers');
        if (!st.controllers.length) {{
          el.innerHTML = '<div class="pad-empty">🔍 No controllers detected</div>';
          return;
        }}
        el.innerHTML = st.controllers.map(c => {{
          const idx = st.pads.findIndex(p => p.device && p.device.eventPath === c.eventPath);
          let assign;
          if (idx >= 0) {{
            assign = '<strong>P' + (idx + 1) + '</strong>';
          }} else {{
            const opts = ['<option value="">Assign…</option>'];
            st.pads.forEach((p, i) => {{ if (!p.device) opts.push('<option value="' + i + '">Player ' + (i + 1) + '</option>'); }});
            assign = '<select data-path="' + esc(c.eventPath) + '" onchange="doAssign(this)">' + opts.join('') + '</select>';
          }}
          return '<div class="card"><span class="icon">' + c.icon + '</span><div class="info">' +
            '<div class="name">' + esc(c.name) + '</div>' +
            '<div class="meta">' + esc(c.inputType) + (c.battery ? ' · 🔋' + c.battery.level + '%' : '') + (c.uniq ? ' · ' + esc(c.uniq) : '') + '</div>' +
            '</div>' + assign + '</div>';
        }}).join('');
      }}

      function doAssign(sel) {{
        if (sel.value === '') return;
        post('/api/assign', {{ eventPath: sel.dataset.path, padIndex: parseInt(sel.value) }});
      }}

      function connect() {{
        const proto = (location.protocol === 'https:') ? 'wss' : 'ws';
        const ws = new WebSocket(proto + '://' + location.host + '/ws');
        ws.onmessage = (ev) => {{
          let msg;
          try {{ msg = JSON.parse(ev.data); }} catch {{ return; }}
          if (msg.type === 'fullState') {{
            st = msg; renderStatus(); renderPads(); renderControllers();
          }} else if (msg.type === 'controllers') {{
            st.controllers = msg.controllers; renderControllers();
          }} else if (msg.type === 'padStates') {{
            for (const p of msg.pads) st.pads[p.index] = {{ ...st.pads[p.index], active: p.active, state: p.state }};
            st.msgCount = msg.msgCount;
            document.getElementById('msgCount').textContent = msg.msgCount.toLocaleString();
            renderViz();
          }} else if (msg.type === 'ps4Status') {{
            st.ps4.connected = msg.connected;
            if (msg.host) {{ st.ps4.host = msg.host; st.ps4.port = msg.port; }}
            if (!msg.connected) st.ps4.version = '';
            renderStatus();
          }} else if (msg.type === 'ps4Version') {{
            st.ps4.version = msg.version; renderStatus();
          }} else if (msg.type === 'padAssignment') {{
            st.pads[msg.pad] = {{ ...st.pads[msg.pad], device: msg.device, active: !!msg.device }};
            renderPads(); renderControllers();
          }}
        }};
        ws.onclose = () => setTimeout(connect, 2000);
      }}
      connect();
    </script>
  </body>
</html>
"""
