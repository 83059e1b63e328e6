from tabular_templates.core.policy import PolicyStatus, TemplatePolicies, file_policy_provider, load_policies


def test_defaults_allow_builtin_templates(tmp_path):
    p = load_policies(tmp_path / "missing.yaml")
    assert p.built_in_templates_enabled_policy == PolicyStatus.NOT_CONFIGURED
    assert p.built_in_templates_allowed() is True
    assert load_policies(None) == TemplatePolicies()


def test_not_configured_ignores_enabled_flag():
    p = TemplatePolicies(built_in_templates_enabled=False)
    assert p.built_in_templates_allowed() is True


def test_yaml_policy_file_forces_value(tmp_path):
    f = tmp_path / "policies.yaml"
    f.write_text("BuiltInTemplatesEnabled: false\n", encoding="utf-8")

    p = load_policies(f)
    assert p.built_in_templates_enabled_policy == PolicyStatus.FORCED
    assert p.built_in_templates_allowed() is False


def test_json_policy_file(tmp_path):
    f = tmp_path / "policies.json"
    f.write_text('{"BuiltInTemplatesEnabled": true}', encoding="utf-8")

    p = load_policies(f)
    assert p.built_in_templates_enabled_policy == PolicyStatus.FORCED
    assert p.built_in_templates_allowed() is True


def test_malformed_or_invalid_files_fall_back_to_defaults(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("BuiltInTemplatesEnabled: [unclosed\n", encoding="utf-8")
    assert load_policies(bad) == TemplatePolicies()

    not_mapping = tmp_path / "list.yaml"
    not_mapping.write_text("- a\n- b\n", encoding="utf-8")
    assert load_policies(not_mapping) == TemplatePolicies()

    not_bool = tmp_path / "str.yaml"
    not_bool.write_text("BuiltInTemplatesEnabled: nope\n", encoding="utf-8")
    assert load_policies(not_bool) == TemplatePolicies()


def test_file_provider_rereads_file(tmp_path):
    f = tmp_path / "policies.yaml"
    provider = file_policy_provider(f)
    assert provider().built_in_templates_allowed() is True

    f.write_text("BuiltInTemplatesEnabled: false\n", encoding="utf-8")
    assert provider().built_in_templates_allowed() is False
