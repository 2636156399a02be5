# tierflow/cli/scaffold.py
import json
from pathlib import Path

from ..constants import (
    BACKEND_NAME, FRONTEND_NAME, CACHE_NAME, BACKEND_PORT, FRONTEND_PORT,
    FRONTEND_SERVICE_PORT, CACHE_PORT, CACHE_STORAGE, CACHE_STORAGE_CLASS,
    NOOP_BUILD_SCRIPT, STACK_FILE,
)
from ..errors import TierflowError


def init_project(project_name: str, parent: Path = None) -> Path:
    """
    Initialize a new tierflow project with placeholder tiers.
    """
    base_path = (parent or Path.cwd()) / project_name

    if base_path.exists():
        raise TierflowError(f"Directory '{base_path}' already exists.")

    print(f"🔨 Creating project '{project_name}'...")
    base_path.mkdir(parents=True)

    # 1. Create Directories
    (base_path / "backend").mkdir()
    (base_path / "frontend").mkdir()

    # 2. stack.toml
    stack_toml_content = f"""[stack]
name = "{project_name}"
namespace = "default"
registry = ""

[backend]
name = "{BACKEND_NAME}"
path = "backend"
port = {BACKEND_PORT}

[backend.config]
REDIS_HOST = "{CACHE_NAME}"
REDIS_PORT = "{CACHE_PORT}"

[frontend]
name = "{FRONTEND_NAME}"
path = "frontend"
port = {FRONTEND_PORT}
# Deployment/Service route here; 'tierflow check' reports it until it equals 'port'
container_port = {FRONTEND_SERVICE_PORT}

[frontend.config]
API_URL = "http://{BACKEND_NAME}:{BACKEND_PORT}"

[cache]
name = "{CACHE_NAME}"
port = {CACHE_PORT}
storage = "{CACHE_STORAGE}"
storage_class = "{CACHE_STORAGE_CLASS}"
"""
    (base_path / STACK_FILE).write_text(stack_toml_content, encoding="utf-8")

    # 3. Backend placeholder
    (base_path / "backend" / "go.mod").write_text(
        f"module {BACKEND_NAME}\n\ngo 1.21\n", encoding="utf-8"
    )
    (base_path / "backend" / "go.sum").write_text("", encoding="utf-8")
    main_go_content = f"""package main

import (
	"fmt"
	"log"
	"net/http"
	"os"
)

func main() {{
	redisAddr := fmt.Sprintf("%s:%s", os.Getenv("REDIS_HOST"), os.Getenv("REDIS_PORT"))
	log.Printf("{BACKEND_NAME}: cache at %s", redisAddr)

	http.HandleFunc("/", func(w http.ResponseWriter, r *http.Request) {{
		fmt.Fprintln(w, "{BACKEND_NAME}")
	}})
	log.Fatal(http.ListenAndServe(":{BACKEND_PORT}", nil))
}}
"""
    (base_path / "backend" / "main.go").write_text(main_go_content, encoding="utf-8")

    # 4. Frontend placeholder
    package_json = {
        "name": FRONTEND_NAME,
        "version": "0.1.0",
        "private": True,
        "scripts": {
            "build": NOOP_BUILD_SCRIPT,
            "start": "node server.js",
        },
        "dependencies": {"express": "^4.18.2"},
    }
    (base_path / "frontend" / "package.json").write_text(json.dumps(package_json, indent=2) + "\n", encoding="utf-8")
    server_js_content = f"""const express = require("express");

const app = express();
const port = process.env.PORT || {FRONTEND_PORT};

app.get("/", (req, res) => res.send("{FRONTEND_NAME} -> " + process.env.API_URL));

app.listen(port, () => console.log(`{FRONTEND_NAME} listening on ${{port}}`));
"""
    (base_path / "frontend" / "server.js").write_text(server_js_content, encoding="utf-8")

    # 5. .gitignore
    gitignore_content = """.build/
node_modules/
__pycache__/
*.pyc
.env
"""
    (base_path / ".gitignore").write_text(gitignore_content, encoding="utf-8")

    print(f"""
✅ Project '{project_name}' created successfully!

Next steps:
  1. cd {project_name}
  2. tierflow check
  3. tierflow up --registry localhost:5000
""")
    return base_path
