"""Multi-node execution for batch provisioning."""

import csv
import concurrent.futures
import json
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

import click

from .client import RedfishClient, new_client
from .tunnel import SSHTunnel


Action = Callable[[RedfishClient], Any]


def load_nodes_from_csv(csv_file: str) -> List[Dict[str, Optional[str]]]:
    """
    Load node credentials from CSV file.
    
    Args:
        csv_file: Path to CSV file with columns: url,username,password
                  Optional columns: name, jumphost, jumphost_user,
                                    jumphost_ssh_key, jumphost_ssh_password
    
    Returns:
        List of node dictionaries
        
    Example CSV:
        url,username,password,name,jumphost,jumphost_user
        https://192.0.2.10/redfish/v1/Systems/1,root,pass1,node1,jump1.example.com,admin
        https://192.0.2.11/redfish/v1/Systems/1,root,pass2,node2,,
    """
    nodes = []
    csv_path = Path(csv_file)
    
    if not csv_path.exists():
        raise FileNotFoundError(f"Node file not found: {csv_file}")
    
    with open(csv_path, 'r') as f:
        reader = csv.DictReader(f)
        
        required = {'url', 'username', 'password'}
        if not reader.fieldnames or not required.issubset(reader.fieldnames):
            raise ValueError(
                f"CSV must contain columns: {', '.join(sorted(required))}\n"
                f"Found: {', '.join(reader.fieldnames or [])}"
            )
        
        for row in reader:
            url = row['url'].strip()
            node = {
                'url': url,
                'username': row['username'].strip(),
                'password': row['password'].strip(),
                'name': (row.get('name') or '').strip() or url,
                # Jumphost configuration (per-node)
                'jumphost': (row.get('jumphost') or '').strip() or None,
                'jumphost_user': (row.get('jumphost_user') or '').strip() or None,
                'jumphost_ssh_key': (row.get('jumphost_ssh_key') or '').strip() or None,
                'jumphost_ssh_password': (row.get('jumphost_ssh_password') or '').strip() or None,
            }
            nodes.append(node)
    
    return nodes


@contextmanager
def connect(
    url: str,
    username: str = "",
    password: str = "",
    insecure: bool = False,
    use_proxy: bool = True,
    jumphost: Optional[str] = None,
    jumphost_user: Optional[str] = None,
    ssh_key: Optional[str] = None,
    ssh_password: Optional[str] = None,
) -> Iterator[RedfishClient]:
    """
    Open a client for one node, tunneling through a jumphost when given.

    The tunnel and the client's session are closed on exit.
    """
    with ExitStack() as stack:
        headers = None
        actual_url = url

        if jumphost:
            tunnel = SSHTunnel(
                url,
                jumphost,
                jumphost_username=jumphost_user,
                ssh_key_path=ssh_key,
                ssh_password=ssh_password,
            )
            actual_url = stack.enter_context(tunnel)
            headers = tunnel.headers

        yield stack.enter_context(
            new_client(
                actual_url,
                insecure=insecure,
                use_proxy=use_proxy,
                username=username,
                password=password,
                headers=headers,
            )
        )


def run_single_node(
    node: Dict[str, Optional[str]],
    action: Action,
    insecure: bool,
    use_proxy: bool,
    jumphost: Optional[str] = None,
    jumphost_user: Optional[str] = None,
    ssh_key: Optional[str] = None,
    ssh_password: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run an action against a single node and return the outcome.
    
    Args:
        node: Node configuration dict (may include per-node jumphost config)
        action: Callable receiving the node's RedfishClient
        insecure: Skip TLS certificate verification
        use_proxy: Honour proxy settings from the environment
        jumphost: Global SSH jumphost (overridden by node-specific config)
        jumphost_user: Global SSH username (overridden by node-specific config)
        ssh_key: Global SSH key path (overridden by node-specific config)
        ssh_password: Global SSH password (overridden by node-specific config)
        
    Returns:
        Dictionary with node name and result/error
    """
    result = {
        'name': node['name'],
        'url': node['url'],
        'success': False,
        'error': None,
        'result': None,
    }

    try:
        with connect(
            node['url'],
            username=node['username'],
            password=node['password'],
            insecure=insecure,
            use_proxy=use_proxy,
            jumphost=node.get('jumphost') or jumphost,
            jumphost_user=node.get('jumphost_user') or jumphost_user,
            ssh_key=node.get('jumphost_ssh_key') or ssh_key,
            ssh_password=node.get('jumphost_ssh_password') or ssh_password,
        ) as client:
            result['result'] = action(client)
        result['success'] = True
    except Exception as e:
        # One node's failure is reported, not propagated to the others
        result['error'] = str(e)

    return result


def run_on_nodes(
    nodes: List[Dict[str, Optional[str]]],
    action: Action,
    insecure: bool = False,
    use_proxy: bool = True,
    jumphost: Optional[str] = None,
    jumphost_user: Optional[str] = None,
    ssh_key: Optional[str] = None,
    ssh_password: Optional[str] = None,
    max_workers: int = 5,
    quiet: bool = False,
) -> List[Dict[str, Any]]:
    """
    Run an action against multiple nodes in parallel, one client per node.
    
    Args:
        nodes: List of node configurations
        action: Callable receiving each node's RedfishClient
        insecure: Skip TLS certificate verification
        use_proxy: Honour proxy settings from the environment
        jumphost: SSH jumphost
        jumphost_user: SSH username
        ssh_key: SSH key path
        ssh_password: SSH password
        max_workers: Maximum parallel workers
        quiet: Suppress progress messages
        
    Returns:
        List of results for each node
    """
    if not quiet:
        click.echo(f"Running on {len(nodes)} node(s)...\n", err=True)
    
    results = []
    
    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_node = {
            executor.submit(
                run_single_node,
                node,
                action,
                insecure,
                use_proxy,
                jumphost,
                jumphost_user,
                ssh_key,
                ssh_password,
            ): node
            for node in nodes
        }
        
        for future in concurrent.futures.as_completed(future_to_node):
            result = future.result()
            results.append(result)
            
            if not quiet:
                if result['success']:
                    click.echo(f"[{result['name']}] ✓ Complete", err=True)
                else:
                    click.echo(f"[{result['name']}] ✗ Failed: {result['error']}", err=True)
    
    return results


def format_multi_node_output(results: List[Dict[str, Any]], output_format: str = "text") -> str:
    """
    Format multi-node results for display.
    
    Args:
        results: List of node results
        output_format: "text" or "json"
        
    Returns:
        Formatted output string
    """
    if output_format.lower() == "json":
        return json.dumps(results, indent=2)
    
    lines = ["=== Multi-Node Results ===\n"]
    
    successful = [r for r in results if r['success']]
    failed = [r for r in results if not r['success']]
    
    lines.append(f"Total: {len(results)} | Success: {len(successful)} | Failed: {len(failed)}\n")
    
    if failed:
        lines.append("Failed Nodes:")
        for r in failed:
            lines.append(f"  {r['name']} ({r['url']}): {r['error']}")
        lines.append("")
    
    for r in successful:
        outcome = r['result'] if r['result'] is not None else "OK"
        lines.append(f"  {r['name']}: {outcome}")
    
    return "\n".join(lines)
