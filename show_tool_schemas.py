#!/usr/bin/env python
"""Display auto-generated tool schemas."""
import sys
sys.path.insert(0, '.')

from dotenv import load_dotenv
load_dotenv()

from finch_service.core.tool_registry import ToolRegistry
from finch_service.core.config import load_settings

# Load config and create registry
config = load_settings()
registry = ToolRegistry.from_config(
    registry_cfg=config['tools']['registry'],
    enabled=config['tools']['enabled'],
)

print('=' * 80)
print('AVAILABLE TOOLS - Auto-Generated Schemas')
print('=' * 80)
print()

for tool_name, tool_instance in registry.all().items():
    func_schema = tool_instance.schema.get('function', {})

    print(f'🔧 TOOL: {func_schema["name"]}')
    print('-' * 80)
    print('📝 Description:')
    print(f'   {func_schema["description"].strip()}')
    print()
    print('📋 Parameters:')

    params = func_schema.get('parameters', {})
    props = params.get('properties', {})
    required = params.get('required', [])

    if not props:
        print('   (No parameters)')
    else:
        for param_name, param_info in props.items():
            req_marker = '✓ REQUIRED' if param_name in required else '  optional'
            param_type = param_info.get('type', 'unknown')
            param_desc = param_info.get('description', 'No description')
            default = f" default={param_info['default']!r}" if 'default' in param_info else ''

            print(f'   • {param_name} ({param_type}) [{req_marker}]{default}')
            print(f'     {param_desc}')

    print()
    print('=' * 80)
    print()
